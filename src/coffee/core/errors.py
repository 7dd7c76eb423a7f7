"""Error taxonomy: every failure a lifecycle operation can surface."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coffee.nurse.report import Anomaly


class CoffeeError(Exception):
    """Base exception for coffee errors."""


class PluginNotFound(CoffeeError):
    def __init__(self, name: str, where: str = ""):
        self.name = name
        suffix = f" in {where}" if where else ""
        super().__init__(f"plugin `{name}` not found{suffix}")


class AmbiguousPlugin(CoffeeError):
    """The same plugin name is advertised by more than one remote."""

    def __init__(self, name: str, remotes: list[str]):
        self.name = name
        self.remotes = list(remotes)
        choices = ", ".join(f"{name}@{r}" for r in self.remotes)
        super().__init__(
            f"plugin `{name}` is advertised by several remotes "
            f"({', '.join(self.remotes)}); pick one of: {choices}"
        )


class AlreadyInstalled(CoffeeError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"plugin `{name}` is already installed")


class DuplicateRemote(CoffeeError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"remote `{name}` already exists")


class RemoteNotFound(CoffeeError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"remote `{name}` not found")


class RemoteInUse(CoffeeError):
    def __init__(self, name: str, plugins: list[str]):
        self.name = name
        self.plugins = list(plugins)
        super().__init__(
            f"remote `{name}` is still used by {', '.join(self.plugins)}; "
            "remove those plugins first or use --force"
        )


class BuildFailed(CoffeeError):
    def __init__(self, plugin: str, output: str):
        self.plugin = plugin
        self.output = output
        last = output.strip().splitlines()[-1] if output.strip() else "no output"
        super().__init__(f"build of `{plugin}` failed: {last}")


class FetchFailed(CoffeeError):
    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"fetch failed: {cause}")


class ConfigPatchFailed(CoffeeError):
    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"could not update the lightning config: {cause}")


class UpgradeFailed(CoffeeError):
    def __init__(self, plugin: str, cause: str | Exception):
        self.plugin = plugin
        self.cause = cause
        super().__init__(f"upgrade of `{plugin}` failed: {cause}")


class InconsistentState(CoffeeError):
    """Raised from a sanity report; carries the failing check."""

    def __init__(self, check: Anomaly):
        self.check = check
        super().__init__(f"inconsistent state: {check}")


class OperationCancelled(CoffeeError):
    def __init__(self, phase: str):
        self.phase = phase
        super().__init__(f"operation cancelled before {phase}")


class PaymentFailed(CoffeeError):
    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"payment failed: {cause}")
