"""CLI entry point: click commands over CoffeeManager with Rich output."""

from __future__ import annotations

import logging
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import click
from rich.logging import RichHandler
from rich.markup import escape

from .core.config import NETWORKS, load_config
from .core.errors import CoffeeError
from .core.sync import CancelToken
from .manager import CoffeeManager
from .tui import (
    console,
    show_list,
    show_readme,
    show_remote_inspect,
    show_remote_list,
    show_repair,
    show_report,
    show_search,
    show_tip,
    show_upgrade,
    spinner,
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


@contextmanager
def _cancel_on_sigint() -> Iterator[CancelToken]:
    """Ctrl-C cancels at the next phase boundary instead of mid-write."""
    token = CancelToken()

    def _on_sigint(signum, frame):
        if token.cancelled:
            raise KeyboardInterrupt
        console.print("\ncancelling after the current step...", style="dim")
        token.cancel()

    old_handler = signal.getsignal(signal.SIGINT)
    signal.signal(signal.SIGINT, _on_sigint)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, old_handler)


def _manager(ctx: click.Context) -> CoffeeManager:
    """Build the manager once per invocation and run the startup inventory."""
    manager = ctx.obj.get("manager")
    if manager is None:
        manager = CoffeeManager(ctx.obj["config"])
        manager.inventory()
        ctx.obj["manager"] = manager
    return manager


class _CoffeeGroup(click.Group):
    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except CoffeeError as e:
            console.print(f"error: {escape(str(e))}", style="bold")
            if ctx.obj and ctx.obj["config"].verbose:
                console.print_exception()
            sys.exit(1)


# ── CLI entry point ─────────────────────────────────────────────────


@click.group(cls=_CoffeeGroup)
@click.option("--conf", default=None, help="Lightning config file to manage")
@click.option("--network", default=None, type=click.Choice(NETWORKS), help="Lightning network")
@click.option("--data-dir", default=None, help="Where coffee keeps its state")
@click.option("--skip-verify", is_flag=True, help="Skip the startup consistency check")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(
    ctx: click.Context,
    conf: str | None,
    network: str | None,
    data_dir: str | None,
    skip_verify: bool,
    verbose: bool,
):
    """coffee: plugin manager for Core Lightning."""
    _setup_logging(verbose)
    config = load_config(
        data_dir=data_dir,
        network=network,
        conf=conf,
        skip_verify=skip_verify,
        verbose=verbose,
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# ── Plugins ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("target")
@click.option("--verbose", "-v", is_flag=True, help="Show build output")
@click.option("--dynamic", "-d", is_flag=True, help="Run from source, skip the build")
@click.pass_context
def install(ctx: click.Context, target: str, verbose: bool, dynamic: bool):
    """Install a plugin (NAME or NAME@REMOTE)."""
    name, _, remote = target.partition("@")
    manager = _manager(ctx)
    with _cancel_on_sigint() as token, spinner(f"installing {escape(name)}..."):
        plugin = manager.install(name, verbose, dynamic, remote=remote or None, token=token)
    console.print(
        f"installed [bold]{escape(plugin.name)}[/bold] from {escape(plugin.origin_remote)}"
    )


@cli.command()
@click.argument("name")
@click.pass_context
def remove(ctx: click.Context, name: str):
    """Remove an installed plugin."""
    plugin = _manager(ctx).remove(name)
    console.print(f"removed [bold]{escape(plugin.name)}[/bold]")


@cli.command("list")
@click.pass_context
def list_(ctx: click.Context):
    """List installed plugins."""
    show_list(_manager(ctx).list())


@cli.command()
@click.argument("remote", required=False, default=None)
@click.option("--verbose", "-v", is_flag=True, help="Show build output")
@click.pass_context
def upgrade(ctx: click.Context, remote: str | None, verbose: bool):
    """Refresh remotes and rebuild plugins that moved upstream."""
    manager = _manager(ctx)
    with _cancel_on_sigint() as token, spinner("upgrading..."):
        outcome = manager.upgrade(remote, verbose, token=token)
    show_upgrade(outcome)
    if not outcome.all_successful:
        sys.exit(1)


@cli.command()
@click.argument("name")
@click.pass_context
def enable(ctx: click.Context, name: str):
    """Enable a disabled plugin."""
    _manager(ctx).enable(name)
    console.print(f"enabled [bold]{escape(name)}[/bold]")


@cli.command()
@click.argument("name")
@click.pass_context
def disable(ctx: click.Context, name: str):
    """Disable a plugin without removing it."""
    _manager(ctx).disable(name)
    console.print(f"disabled [bold]{escape(name)}[/bold]")


@cli.command()
@click.argument("name")
@click.pass_context
def show(ctx: click.Context, name: str):
    """Print a plugin's README."""
    show_readme(_manager(ctx).show(name))


@cli.command()
@click.argument("name")
@click.pass_context
def search(ctx: click.Context, name: str):
    """Find the remote advertising a plugin."""
    show_search(_manager(ctx).search(name))


@cli.command()
@click.argument("name")
@click.argument("amount_msat", type=click.IntRange(min=1))
@click.pass_context
def tip(ctx: click.Context, name: str, amount_msat: int):
    """Tip a plugin's developers through the node."""
    manager = _manager(ctx)
    with spinner(f"paying {amount_msat} msat..."):
        outcome = manager.tip(name, amount_msat)
    show_tip(outcome)


# ── Remotes ─────────────────────────────────────────────────────────


class _RemoteGroup(click.Group):
    """`coffee remote NAME` with no action shows that remote."""

    def resolve_command(self, ctx: click.Context, args: list[str]):
        if args and args[0] not in self.commands and not args[0].startswith("-"):
            args = ["show", *args]
        return super().resolve_command(ctx, args)


@cli.group(cls=_RemoteGroup)
def remote():
    """Manage plugin remotes."""


@remote.command("add")
@click.argument("name")
@click.argument("url")
@click.pass_context
def remote_add(ctx: click.Context, name: str, url: str):
    """Register a git repository of plugins."""
    manager = _manager(ctx)
    with spinner(f"cloning {escape(url)}..."):
        r = manager.remote_add(name, url)
    console.print(
        f"added remote [bold]{escape(r.local_name)}[/bold] ({len(r.manifest)} plugins)"
    )


@remote.command("rm")
@click.argument("name")
@click.option("--force", "-f", is_flag=True, help="Also remove plugins installed from it")
@click.pass_context
def remote_rm(ctx: click.Context, name: str, force: bool):
    """Remove a remote."""
    _manager(ctx).remote_rm(name, force=force)
    console.print(f"removed remote [bold]{escape(name)}[/bold]")


@remote.command("list")
@click.pass_context
def remote_list(ctx: click.Context):
    """List configured remotes."""
    show_remote_list(_manager(ctx).remote_list())


@remote.command("inspect")
@click.argument("name")
@click.pass_context
def remote_inspect(ctx: click.Context, name: str):
    """List the plugins a remote advertises."""
    show_remote_inspect(name, _manager(ctx).remote_inspect(name))


@remote.command("show")
@click.argument("name")
@click.pass_context
def remote_show(ctx: click.Context, name: str):
    """Show one remote."""
    show_remote_list([_manager(ctx).remote_get(name)])


# ── Lightning config ────────────────────────────────────────────────


@cli.command()
@click.argument("cln_root", type=click.Path(exists=True, file_okay=False))
@click.pass_context
def setup(ctx: click.Context, cln_root: str):
    """Let coffee manage plugins in the lightning config under CLN_ROOT."""
    path = _manager(ctx).setup(cln_root)
    console.print(f"managing plugins in [bold]{escape(str(path))}[/bold]")
    console.print("restart lightningd to load them", style="dim")


@cli.command()
@click.argument("cln_root", type=click.Path(file_okay=False))
@click.pass_context
def teardown(ctx: click.Context, cln_root: str):
    """Remove coffee's block from the lightning config."""
    path = _manager(ctx).teardown(cln_root)
    console.print(f"removed the managed block from [bold]{escape(str(path))}[/bold]")


@cli.command()
@click.option("--verify", is_flag=True, help="Only report, change nothing")
@click.pass_context
def nurse(ctx: click.Context, verify: bool):
    """Check coffee's state and repair what it can."""
    ctx.obj["config"].skip_verify = True
    manager = _manager(ctx)
    if verify:
        report = manager.nurse_verify()
        show_report(report)
        if not report.is_sane():
            sys.exit(1)
        return
    with spinner("repairing..."):
        outcome = manager.nurse_repair()
    show_repair(outcome)
    if not outcome.is_sane():
        sys.exit(1)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
