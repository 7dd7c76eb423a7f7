"""Tip a plugin's developer through the node's payment capability."""

from __future__ import annotations

import logging

from coffee.cln.rpc import Payer
from coffee.core.errors import CoffeeError, PaymentFailed
from coffee.core.sync import LockTable
from coffee.remotes.registry import RemoteRegistry

from .index import PluginIndex
from .models import TipOutcome

logger = logging.getLogger(__name__)


class TipService:
    def __init__(
        self,
        registry: RemoteRegistry,
        index: PluginIndex,
        payer: Payer,
        locks: LockTable,
    ):
        self.registry = registry
        self.index = index
        self.payer = payer
        self.locks = locks

    def tip(self, name: str, amount_msat: int) -> TipOutcome:
        plugin = self.index.get(name)
        if amount_msat <= 0:
            raise CoffeeError("the tip amount must be positive")
        if plugin.origin_remote not in self.registry:
            raise PaymentFailed(f"remote `{plugin.origin_remote}` of `{name}` is gone")
        descriptor = self.registry.get(plugin.origin_remote).find(name)
        if descriptor is None or not descriptor.tipping:
            raise PaymentFailed(f"`{name}` does not advertise a tipping destination")

        logger.info("tipping %s %d msat", name, amount_msat)
        result = self.payer.pay(descriptor.tipping, amount_msat, f"tip for {name} via coffee")

        with self.locks.commit:
            plugin.tip_total_msat += amount_msat
            self.index.update(plugin)
        return TipOutcome(
            for_plugin=name,
            amount_msat=amount_msat,
            destination=result.get("destination", ""),
            status=result.get("status", "complete"),
            payment_hash=result.get("payment_hash", ""),
            payment_preimage=result.get("payment_preimage", ""),
            tip_total_msat=plugin.tip_total_msat,
        )
