"""
Vault ledger.

Holds pooled balances, share accounting and strategy parameters for every
vault, and applies rebalances submitted by authorized relayers.
"""
import logging
import math
from typing import Dict, Optional, Tuple

from eth_utils import keccak

from protocol.errors import (
    EnforcedPause,
    InsufficientDeposit,
    InsufficientShares,
    InvalidTickRange,
    InvalidTokens,
    StrategyNotRegistered,
    Unauthorized,
    UnauthorizedRelayer,
    VaultInactive,
    VaultNotFound,
)
from protocol.events import (
    Deposit,
    Paused,
    ProtocolFeeCollected,
    Rebalanced,
    Unpaused,
    VaultCreated,
    VaultStatusChanged,
    VaultStrategyChanged,
    Withdraw,
)
from protocol.models import RebalanceAction, StrategyParams, VaultInfo
from vault.chain import (
    STORAGE_WRITE_GAS,
    Contract,
    LocalChain,
    non_reentrant,
    transactional,
)
from vault.registry import BPS_DENOMINATOR, AuthorizationRegistry
from vault.strategy_manager import StrategyManager
from vault.tokens import MockERC20
from vault.utils.env import MIN_DEPOSIT
from vault.utils.web3 import ZERO_ADDRESS, normalize_address, to_hex

logger = logging.getLogger(__name__)


class VaultLedger(Contract):
    """Pooled LP positions with share accounting."""

    __state__ = ("vaults", "strategies", "user_shares", "vault_count", "paused", "strategy_manager")

    def __init__(
        self,
        chain: LocalChain,
        registry: AuthorizationRegistry,
        min_deposit: int = MIN_DEPOSIT,
    ):
        super().__init__(chain)
        self.registry = registry
        self.min_deposit = min_deposit

        self.vaults: Dict[int, VaultInfo] = {}
        self.strategies: Dict[int, StrategyParams] = {}
        self.user_shares: Dict[int, Dict[str, int]] = {}
        self.vault_count = 0
        self.paused = False
        self.strategy_manager: Optional[str] = None

    # -----------------------------
    # Guards
    # -----------------------------

    def _when_not_paused(self) -> None:
        if self.paused:
            raise EnforcedPause("Ledger is paused")

    def _only_owner(self, caller: str) -> None:
        if caller != self.registry.owner:
            raise Unauthorized(f"{caller} is not the registry owner")

    def _get_vault(self, vault_id: int) -> VaultInfo:
        vault = self.vaults.get(vault_id)
        if vault is None:
            raise VaultNotFound(f"Vault {vault_id} does not exist")
        return vault

    def _get_active_vault(self, vault_id: int) -> VaultInfo:
        vault = self._get_vault(vault_id)
        if not vault.is_active:
            raise VaultInactive(f"Vault {vault_id} is inactive")
        return vault

    def _token(self, address: str) -> MockERC20:
        token = self.chain.get_contract(address)
        if not isinstance(token, MockERC20):
            raise InvalidTokens(f"No token deployed at {address}")
        return token

    # -----------------------------
    # Views
    # -----------------------------

    def get_vault_info(self, vault_id: int) -> VaultInfo:
        return self._get_vault(vault_id).model_copy()

    def get_vault_strategy(self, vault_id: int) -> StrategyParams:
        self._get_vault(vault_id)
        return self.strategies[vault_id].model_copy()

    def get_user_shares(self, vault_id: int, user: str) -> int:
        return self.user_shares.get(vault_id, {}).get(normalize_address(user), 0)

    # -----------------------------
    # Vault lifecycle
    # -----------------------------

    @transactional
    def create_vault(
        self, caller: str, token_a: str, token_b: str, params: StrategyParams
    ) -> int:
        """
        Create a vault for a token pair.

        Raises:
            InvalidTokens: If either token is null or both are the same
            InvalidAddress: If either token is not a hex address
            InvalidTickRange: If params.tick_lower >= params.tick_upper
        """
        self._when_not_paused()
        token_a = normalize_address(token_a)
        token_b = normalize_address(token_b)
        if token_a == ZERO_ADDRESS or token_b == ZERO_ADDRESS or token_a == token_b:
            raise InvalidTokens(f"Invalid token pair {token_a}/{token_b}")
        if params.tick_lower >= params.tick_upper:
            raise InvalidTickRange(
                f"tick_lower {params.tick_lower} must be below tick_upper {params.tick_upper}"
            )

        self.vault_count += 1
        vault_id = self.vault_count
        self.vaults[vault_id] = VaultInfo(
            vault_id=vault_id,
            owner=caller,
            token_a=token_a,
            token_b=token_b,
            last_rebalance=self.now,
            is_active=True,
        )
        self.strategies[vault_id] = params.model_copy()
        self.user_shares[vault_id] = {}
        self.chain.consume_gas(STORAGE_WRITE_GAS)

        self.emit(VaultCreated, vault_id=vault_id, owner=caller, token_a=token_a, token_b=token_b)
        logger.info(f"Created vault {vault_id} ({token_a}/{token_b}) for {caller}")
        return vault_id

    @transactional
    def set_vault_active(self, caller: str, vault_id: int, active: bool) -> None:
        """Soft-(de)activate a vault. Vault owner or registry owner only."""
        vault = self._get_vault(vault_id)
        if caller != vault.owner and caller != self.registry.owner:
            raise Unauthorized(f"{caller} cannot change status of vault {vault_id}")
        if vault.is_active == active:
            return
        vault.is_active = active
        self.emit(VaultStatusChanged, vault_id=vault_id, is_active=active)
        logger.info(f"Vault {vault_id} active={active}")

    @transactional
    def set_strategy_manager(self, caller: str, manager: Optional[str]) -> None:
        self._only_owner(caller)
        self.strategy_manager = normalize_address(manager) if manager else None

    @transactional
    def set_vault_strategy(self, caller: str, vault_id: int, strategy: Optional[str]) -> None:
        """Link a registered strategy contract to a vault (None unlinks)."""
        vault = self._get_vault(vault_id)
        if caller != vault.owner and caller != self.registry.owner:
            raise Unauthorized(f"{caller} cannot set strategy of vault {vault_id}")
        if strategy is not None:
            strategy = normalize_address(strategy)
            manager = self.chain.get_contract(self.strategy_manager) if self.strategy_manager else None
            if not isinstance(manager, StrategyManager) or not manager.is_registered(strategy):
                raise StrategyNotRegistered(f"Strategy {strategy} is not registered")
        vault.strategy = strategy
        self.emit(VaultStrategyChanged, vault_id=vault_id, strategy=strategy)

    @transactional
    def pause(self, caller: str) -> None:
        self._only_owner(caller)
        self.paused = True
        self.emit(Paused, account=caller)
        logger.warning(f"Ledger paused by {caller}")

    @transactional
    def unpause(self, caller: str) -> None:
        self._only_owner(caller)
        self.paused = False
        self.emit(Unpaused, account=caller)
        logger.info(f"Ledger unpaused by {caller}")

    # -----------------------------
    # Deposits / withdrawals
    # -----------------------------

    def _shares_for_deposit(self, vault: VaultInfo, amount_a: int, amount_b: int) -> int:
        # An emptied vault can still hold fee dust; it is bootstrapped afresh.
        if vault.total_shares == 0:
            return math.isqrt(amount_a * amount_b)

        candidates = []
        if vault.total_token_a > 0:
            candidates.append(amount_a * vault.total_shares // vault.total_token_a)
        if vault.total_token_b > 0:
            candidates.append(amount_b * vault.total_shares // vault.total_token_b)
        if not candidates:
            return math.isqrt(amount_a * amount_b)
        return min(candidates)

    @transactional
    @non_reentrant
    def deposit(self, caller: str, vault_id: int, amount_a: int, amount_b: int) -> int:
        """
        Deposit both tokens and mint shares.

        The first deposit mints floor(sqrt(a * b)) shares; later deposits mint
        the smaller of the two proportional amounts.

        Returns:
            Number of shares minted
        """
        self._when_not_paused()
        vault = self._get_active_vault(vault_id)
        if amount_a < self.min_deposit or amount_b < self.min_deposit:
            raise InsufficientDeposit(
                f"Deposit ({amount_a}, {amount_b}) below minimum {self.min_deposit}"
            )
        shares = self._shares_for_deposit(vault, amount_a, amount_b)
        if shares == 0:
            raise InsufficientDeposit(f"Deposit ({amount_a}, {amount_b}) mints no shares")

        self._token(vault.token_a).transfer_from(self.address, caller, self.address, amount_a)
        self._token(vault.token_b).transfer_from(self.address, caller, self.address, amount_b)

        vault.total_token_a += amount_a
        vault.total_token_b += amount_b
        vault.total_shares += shares
        holders = self.user_shares[vault_id]
        holders[caller] = holders.get(caller, 0) + shares
        self.chain.consume_gas(STORAGE_WRITE_GAS)

        self.emit(
            Deposit,
            vault_id=vault_id,
            user=caller,
            amount_a=amount_a,
            amount_b=amount_b,
            shares=shares,
        )
        logger.info(f"Deposit into vault {vault_id} by {caller}: {shares} shares")
        return shares

    @transactional
    @non_reentrant
    def withdraw(self, caller: str, vault_id: int, shares: int) -> Tuple[int, int]:
        """
        Burn shares and return the proportional token amounts.

        Returns:
            Tuple of (amount_a, amount_b) sent to the caller
        """
        vault = self._get_vault(vault_id)
        holders = self.user_shares[vault_id]
        balance = holders.get(caller, 0)
        if shares <= 0 or balance < shares:
            raise InsufficientShares(
                f"{caller} holds {balance} shares of vault {vault_id}, requested {shares}"
            )

        amount_a = shares * vault.total_token_a // vault.total_shares
        amount_b = shares * vault.total_token_b // vault.total_shares

        holders[caller] = balance - shares
        vault.total_shares -= shares
        vault.total_token_a -= amount_a
        vault.total_token_b -= amount_b
        self.chain.consume_gas(STORAGE_WRITE_GAS)

        if amount_a > 0:
            self._token(vault.token_a).transfer(self.address, caller, amount_a)
        if amount_b > 0:
            self._token(vault.token_b).transfer(self.address, caller, amount_b)

        self.emit(
            Withdraw,
            vault_id=vault_id,
            user=caller,
            shares=shares,
            amount_a=amount_a,
            amount_b=amount_b,
        )
        logger.info(f"Withdraw from vault {vault_id} by {caller}: {shares} shares")
        return amount_a, amount_b

    # -----------------------------
    # Rebalance
    # -----------------------------

    @transactional
    @non_reentrant
    def rebalance(self, caller: str, vault_id: int, action_data: bytes) -> None:
        """
        Apply a new price range and take the protocol fee.

        Restricted to authorized relayers and the registry owner.
        """
        if not self.registry.is_relayer(caller) and caller != self.registry.owner:
            raise UnauthorizedRelayer(f"{caller} is not an authorized relayer")
        self._when_not_paused()
        vault = self._get_active_vault(vault_id)

        action = RebalanceAction.decode(action_data)
        if action.tick_lower >= action.tick_upper:
            raise InvalidTickRange(
                f"tick_lower {action.tick_lower} must be below tick_upper {action.tick_upper}"
            )
        if action.reallocate_pct:
            logger.debug(
                f"Vault {vault_id}: reallocate_pct={action.reallocate_pct} decoded, not applied"
            )

        strategy = self.strategies[vault_id]
        strategy.tick_lower = action.tick_lower
        strategy.tick_upper = action.tick_upper
        vault.last_rebalance = self.now
        self.chain.consume_gas(STORAGE_WRITE_GAS)

        fee_bps = self.registry.protocol_fee_bps
        recipient = self.registry.fee_recipient
        fee_a = vault.total_token_a * fee_bps // BPS_DENOMINATOR
        fee_b = vault.total_token_b * fee_bps // BPS_DENOMINATOR
        for token, fee in ((vault.token_a, fee_a), (vault.token_b, fee_b)):
            if fee == 0:
                continue
            if token == vault.token_a:
                vault.total_token_a -= fee
            else:
                vault.total_token_b -= fee
            self._token(token).transfer(self.address, recipient, fee)
            self.emit(
                ProtocolFeeCollected,
                vault_id=vault_id,
                token=token,
                recipient=recipient,
                amount=fee,
            )

        self.emit(
            Rebalanced,
            vault_id=vault_id,
            executor=caller,
            details_hash=to_hex(keccak(bytes(action_data))),
        )
        logger.info(
            f"Rebalanced vault {vault_id} to [{action.tick_lower}, {action.tick_upper}] "
            f"by {caller}; fees ({fee_a}, {fee_b})"
        )
