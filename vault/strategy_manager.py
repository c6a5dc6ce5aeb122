"""
Registry of strategy contracts that vaults may link to.
"""
import logging
from typing import Set

from protocol.errors import InvalidThreshold, Unauthorized, ZeroAddress
from protocol.events import StrategyRegistered, StrategyUnregistered, VolatilityThresholdUpdated
from vault.chain import Contract, LocalChain, transactional
from vault.registry import BPS_DENOMINATOR, AuthorizationRegistry
from vault.utils.web3 import ZERO_ADDRESS, normalize_address

logger = logging.getLogger(__name__)


class StrategyManager(Contract):
    """Owner-gated strategy allow-list plus the volatility threshold."""

    __state__ = ("registered", "volatility_threshold")

    def __init__(
        self,
        chain: LocalChain,
        registry: AuthorizationRegistry,
        volatility_threshold: int = 500,
    ):
        super().__init__(chain)
        self.registry = registry
        self.registered: Set[str] = set()
        self.volatility_threshold = volatility_threshold

    def _only_owner(self, caller: str) -> None:
        if caller != self.registry.owner:
            raise Unauthorized(f"{caller} is not the registry owner")

    def is_registered(self, strategy: str) -> bool:
        return normalize_address(strategy) in self.registered

    @transactional
    def register_strategy(self, caller: str, strategy: str) -> None:
        self._only_owner(caller)
        strategy = normalize_address(strategy)
        if strategy == ZERO_ADDRESS:
            raise ZeroAddress("Strategy cannot be the zero address")
        if strategy in self.registered:
            return
        self.registered.add(strategy)
        self.emit(StrategyRegistered, strategy=strategy)
        logger.info(f"Registered strategy {strategy}")

    @transactional
    def unregister_strategy(self, caller: str, strategy: str) -> None:
        self._only_owner(caller)
        strategy = normalize_address(strategy)
        if strategy not in self.registered:
            return
        self.registered.discard(strategy)
        self.emit(StrategyUnregistered, strategy=strategy)
        logger.info(f"Unregistered strategy {strategy}")

    @transactional
    def set_volatility_threshold(self, caller: str, threshold_bps: int) -> None:
        self._only_owner(caller)
        if not 0 <= threshold_bps <= BPS_DENOMINATOR:
            raise InvalidThreshold(f"Threshold {threshold_bps} bps outside 0..{BPS_DENOMINATOR}")
        self.volatility_threshold = threshold_bps
        self.emit(VolatilityThresholdUpdated, threshold_bps=threshold_bps)
