"""
Vault orchestrator core.

In-process rendition of the vault contracts: ledger, authorization
registry, signed action verifier and rebalance executor, plus the relayer
job store.
"""
from vault.chain import LocalChain
from vault.deployment import Deployment, deploy
from vault.executor import RebalanceExecutor
from vault.ledger import VaultLedger
from vault.registry import AuthorizationRegistry
from vault.strategy_manager import StrategyManager
from vault.tokens import MockERC20
from vault.verifier import SignedActionVerifier

__all__ = [
    "LocalChain",
    "Deployment",
    "deploy",
    "RebalanceExecutor",
    "VaultLedger",
    "AuthorizationRegistry",
    "StrategyManager",
    "MockERC20",
    "SignedActionVerifier",
]
