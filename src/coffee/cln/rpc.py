"""Payment execution through the lightning node's JSON-RPC socket."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from pyln.client import LightningRpc, RpcError

from coffee.core.errors import PaymentFailed

logger = logging.getLogger(__name__)


class Payer(Protocol):
    def pay(self, tipping: dict[str, str], amount_msat: int, note: str) -> dict: ...


def _rpc_message(e: RpcError) -> str:
    error = getattr(e, "error", None)
    if isinstance(error, dict):
        return str(error.get("message", error))
    return str(error or e)


class LightningPayer:
    """Pay a bolt12 offer: ``fetchinvoice`` then ``pay``."""

    def __init__(self, socket_path: Path | None):
        self.socket_path = socket_path

    def pay(self, tipping: dict[str, str], amount_msat: int, note: str) -> dict:
        if self.socket_path is None:
            raise PaymentFailed("lightning node unknown; run `coffee setup` first")
        offer = tipping.get("bolt12")
        if not offer:
            raise PaymentFailed("the plugin does not advertise a bolt12 offer")

        rpc = LightningRpc(str(self.socket_path))
        try:
            fetched = rpc.call(
                "fetchinvoice",
                {"offer": offer, "amount_msat": amount_msat, "payer_note": note},
            )
            logger.debug("fetched invoice for %s msat", amount_msat)
            result = rpc.call("pay", {"bolt11": fetched["invoice"]})
        except RpcError as e:
            raise PaymentFailed(_rpc_message(e)) from e
        except OSError as e:
            raise PaymentFailed(f"cannot reach {self.socket_path}: {e}") from e

        if result.get("status") != "complete":
            raise PaymentFailed(f"payment status is `{result.get('status', 'unknown')}`")
        return result
