"""
Deploy and wire the vault contracts on a LocalChain.
"""
import logging
from typing import Optional

from vault.chain import LocalChain
from vault.executor import RebalanceExecutor
from vault.ledger import VaultLedger
from vault.registry import AuthorizationRegistry
from vault.strategy_manager import StrategyManager
from vault.utils.env import DEFAULT_PROTOCOL_FEE_BPS, MAX_PAYLOAD_AGE, MIN_DEPOSIT
from vault.verifier import SignedActionVerifier

logger = logging.getLogger(__name__)


class Deployment:
    """Handles to one wired set of vault contracts."""

    def __init__(
        self,
        chain: LocalChain,
        registry: AuthorizationRegistry,
        ledger: VaultLedger,
        verifier: SignedActionVerifier,
        executor: RebalanceExecutor,
        strategy_manager: StrategyManager,
    ):
        self.chain = chain
        self.registry = registry
        self.ledger = ledger
        self.verifier = verifier
        self.executor = executor
        self.strategy_manager = strategy_manager


def deploy(
    chain: LocalChain,
    owner: str,
    fee_recipient: Optional[str] = None,
    protocol_fee_bps: int = DEFAULT_PROTOCOL_FEE_BPS,
    max_payload_age: int = MAX_PAYLOAD_AGE,
    min_deposit: int = MIN_DEPOSIT,
) -> Deployment:
    """
    Deploy registry, ledger, verifier, executor and strategy manager.

    Wiring mirrors a production deployment: the verifier is the only nonce
    consumer, the executor is the only verifier client and is itself an
    authorized relayer on the ledger.
    """
    registry = AuthorizationRegistry(
        chain, owner=owner, fee_recipient=fee_recipient, protocol_fee_bps=protocol_fee_bps
    )
    ledger = VaultLedger(chain, registry, min_deposit=min_deposit)
    strategy_manager = StrategyManager(chain, registry)
    verifier = SignedActionVerifier(chain, registry, max_payload_age=max_payload_age)
    executor = RebalanceExecutor(chain, verifier, ledger)

    registry.bind_verifier(owner, verifier.address)
    verifier.bind_executor(owner, executor.address)
    registry.set_relayer_authorization(owner, executor.address, True)
    ledger.set_strategy_manager(owner, strategy_manager.address)

    logger.info(
        f"Deployed vault protocol on chain {chain.chain_id}: ledger={ledger.address}, "
        f"verifier={verifier.address}, executor={executor.address}"
    )
    return Deployment(chain, registry, ledger, verifier, executor, strategy_manager)
