"""
Rebalance executor.

Glues a successful payload verification to the ledger's privileged
rebalance entry point as one atomic transaction: either the signer's nonce
advances and the rebalance applies, or neither happens.
"""
import logging
from typing import Any, Dict, Union

from pydantic import ValidationError

from protocol.errors import ExecutionFailed, MalformedPayload
from protocol.events import RebalanceExecuted
from protocol.models import RebalancePayload
from vault.chain import Contract, LocalChain, transactional
from vault.ledger import VaultLedger
from vault.verifier import SignedActionVerifier

logger = logging.getLogger(__name__)


class RebalanceExecutor(Contract):
    """Executes signed rebalance payloads. Must be an authorized relayer."""

    def __init__(self, chain: LocalChain, verifier: SignedActionVerifier, ledger: VaultLedger):
        super().__init__(chain)
        self.verifier = verifier
        self.ledger = ledger

    @staticmethod
    def decode_payload(payload: Union[RebalancePayload, Dict[str, Any]]) -> RebalancePayload:
        if isinstance(payload, RebalancePayload):
            return payload
        try:
            return RebalancePayload.model_validate(payload)
        except ValidationError as e:
            raise MalformedPayload(f"Malformed rebalance payload: {e}") from e

    @transactional
    def execute_rebalance(
        self,
        caller: str,
        vault_id: int,
        payload: Union[RebalancePayload, Dict[str, Any]],
        signature: str,
    ) -> None:
        """
        Verify a signed payload and apply its rebalance.

        Callable by anyone: the signature carries the authorization.

        Raises:
            MalformedPayload: Payload does not decode
            ExecutionFailed: The ledger rebalance raised
            Any verifier error (InvalidSignature, PayloadExpired, ...)
        """
        gas_start = self.chain.gas_used
        payload = self.decode_payload(payload)

        signer = self.verifier.verify(self.address, vault_id, payload, signature)
        try:
            self.ledger.rebalance(self.address, vault_id, payload.action_data)
        except Exception as e:
            logger.warning(
                f"Rebalance of vault {vault_id} failed after verification: "
                f"{type(e).__name__}: {e}"
            )
            raise ExecutionFailed(
                f"Rebalance of vault {vault_id} failed: {type(e).__name__}: {e}"
            ) from e

        gas_used = self.chain.gas_used - gas_start
        self.emit(
            RebalanceExecuted,
            vault_id=vault_id,
            signer=signer,
            nonce=payload.nonce,
            gas_used=gas_used,
        )
        logger.info(
            f"Executed rebalance of vault {vault_id} for signer {signer} "
            f"(nonce {payload.nonce}, gas {gas_used}) submitted by {caller}"
        )
