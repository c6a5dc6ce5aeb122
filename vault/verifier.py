"""
Signed action verifier.

Validates a RebalancePayload before anything is mutated: call-site vault
id, freshness window, EIP-712 signature, signer authorization and the
signer's next nonce. A successful verification consumes that nonce.
"""
import logging
from typing import Optional

from protocol.eip712 import EIP712Domain, hash_payload, payload_digest, recover_signer
from protocol.errors import (
    InvalidNonce,
    InvalidSignature,
    PayloadExpired,
    PayloadTooOld,
    Unauthorized,
    UnauthorizedSigner,
)
from protocol.models import RebalancePayload
from vault.chain import ECRECOVER_GAS, Contract, LocalChain, transactional
from vault.registry import AuthorizationRegistry
from vault.utils.env import MAX_PAYLOAD_AGE, PROTOCOL_NAME, PROTOCOL_VERSION
from vault.utils.web3 import normalize_address, to_hex

logger = logging.getLogger(__name__)


class SignedActionVerifier(Contract):
    """EIP-712 verifier for rebalance payloads."""

    __state__ = ("executor",)

    def __init__(
        self,
        chain: LocalChain,
        registry: AuthorizationRegistry,
        name: str = PROTOCOL_NAME,
        version: str = PROTOCOL_VERSION,
        max_payload_age: int = MAX_PAYLOAD_AGE,
    ):
        super().__init__(chain)
        self.registry = registry
        self.name = name
        self.version = version
        self.max_payload_age = max_payload_age
        self.executor: Optional[str] = None

    @property
    def domain(self) -> EIP712Domain:
        return EIP712Domain(
            name=self.name,
            version=self.version,
            chain_id=self.chain.chain_id,
            verifying_contract=self.address,
        )

    def domain_separator(self) -> str:
        return to_hex(self.domain.separator())

    def get_payload_hash(self, payload: RebalancePayload) -> str:
        """Digest a signer signs for this payload on this deployment."""
        return to_hex(payload_digest(self.domain, payload))

    def get_struct_hash(self, payload: RebalancePayload) -> str:
        return to_hex(hash_payload(payload))

    def get_nonce(self, signer: str) -> int:
        return self.registry.get_nonce(signer)

    @transactional
    def bind_executor(self, caller: str, executor: str) -> None:
        if caller != self.registry.owner:
            raise Unauthorized(f"{caller} is not the registry owner")
        self.executor = normalize_address(executor)

    def check(self, vault_id: int, payload: RebalancePayload, signature: str) -> str:
        """
        Run every check without consuming the nonce.

        Returns:
            The recovered signer address

        Raises:
            InvalidSignature: Vault id mismatch or unrecoverable signature
            PayloadExpired: now > expiry
            PayloadTooOld: issued in the future, or older than max_payload_age
            UnauthorizedSigner: Signer not in the registry
            InvalidNonce: Nonce is not the signer's next nonce
        """
        now = self.now
        if payload.vault_id != vault_id:
            raise InvalidSignature(
                f"Payload vault {payload.vault_id} does not match call-site vault {vault_id}"
            )
        if now > payload.expiry:
            raise PayloadExpired(f"Payload expired at {payload.expiry} (now {now})")
        if now < payload.issued_at:
            raise PayloadTooOld(f"Payload issued in the future at {payload.issued_at} (now {now})")
        if now > payload.issued_at + self.max_payload_age:
            raise PayloadTooOld(
                f"Payload issued at {payload.issued_at} exceeds max age {self.max_payload_age}s"
            )

        if self.chain.in_transaction:
            self.chain.consume_gas(ECRECOVER_GAS)
        signer = recover_signer(self.domain, payload, signature)

        if not self.registry.is_signer(signer):
            raise UnauthorizedSigner(f"Signer {signer} is not authorized")
        if self.registry.get_nonce(signer) != payload.nonce:
            raise InvalidNonce(f"Nonce {payload.nonce} rejected for signer {signer}")
        return signer

    @transactional
    def verify(self, caller: str, vault_id: int, payload: RebalancePayload, signature: str) -> str:
        """
        Verify a payload and consume its nonce. Bound executor only.

        Returns:
            The recovered signer address
        """
        if self.executor is None or caller != self.executor:
            raise Unauthorized(f"{caller} is not the bound executor")
        signer = self.check(vault_id, payload, signature)
        self.registry.consume_nonce(self.address, signer, payload.nonce)
        logger.info(f"Verified payload for vault {vault_id} from {signer} (nonce {payload.nonce})")
        return signer
