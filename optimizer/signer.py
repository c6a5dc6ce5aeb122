"""
Payload signing for the off-chain optimizer.
"""
import logging
from typing import Optional

from eth_account import Account

from optimizer.models import RebalanceRecommendation
from optimizer.strategy import HeuristicOptimizer
from protocol.eip712 import EIP712Domain, sign_payload
from protocol.models import RebalanceAction, RebalancePayload, SignedPayload
from vault.utils.env import PAYLOAD_TTL

logger = logging.getLogger(__name__)


class PayloadSigner:
    """Holds an optimizer key and signs rebalance payloads for one domain."""

    def __init__(self, private_key: str, domain: EIP712Domain):
        self.account = Account.from_key(private_key)
        self._private_key = private_key
        self.domain = domain

    @property
    def address(self) -> str:
        return self.account.address

    def build_payload(
        self,
        vault_id: int,
        nonce: int,
        action: RebalanceAction,
        issued_at: int,
        ttl: int = PAYLOAD_TTL,
    ) -> RebalancePayload:
        return RebalancePayload(
            vault_id=vault_id,
            nonce=nonce,
            action_data=action.encode(),
            issued_at=issued_at,
            expiry=issued_at + ttl,
        )

    def sign(self, payload: RebalancePayload) -> SignedPayload:
        signature = sign_payload(self.domain, payload, self._private_key)
        logger.info(
            f"Signed payload for vault {payload.vault_id} (nonce {payload.nonce}) as {self.address}"
        )
        return SignedPayload(payload=payload, signature=signature)

    def sign_recommendation(
        self,
        recommendation: RebalanceRecommendation,
        nonce: int,
        issued_at: int,
        ttl: int = PAYLOAD_TTL,
    ) -> Optional[SignedPayload]:
        """Sign a positive recommendation; None when no rebalance is advised."""
        action = HeuristicOptimizer.to_action(recommendation)
        if action is None:
            logger.info(f"Vault {recommendation.vault_id}: nothing to sign ({recommendation.reason})")
            return None
        payload = self.build_payload(recommendation.vault_id, nonce, action, issued_at, ttl)
        return self.sign(payload)
