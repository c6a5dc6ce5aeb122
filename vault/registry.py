"""
Authorization registry.

Single owner-gated home for the relayer and signer allow-lists, the
per-signer nonces and the protocol fee policy. The ledger and verifier
receive it as an explicit dependency.
"""
import logging
from typing import Dict, Optional, Set

from protocol.errors import FeeTooHigh, InvalidNonce, NegativeFee, Unauthorized, ZeroAddress
from protocol.events import (
    FeeRecipientUpdated,
    OwnershipTransferred,
    OwnershipTransferStarted,
    ProtocolFeeUpdated,
    RelayerAuthorizationChanged,
    SignerAuthorizationChanged,
)
from vault.chain import STORAGE_WRITE_GAS, Contract, LocalChain, transactional
from vault.utils.env import DEFAULT_PROTOCOL_FEE_BPS
from vault.utils.web3 import ZERO_ADDRESS, normalize_address

logger = logging.getLogger(__name__)

# Hard 10% ceiling. Not adjustable, not even by the owner.
MAX_PROTOCOL_FEE_BPS = 1000
BPS_DENOMINATOR = 10_000


def _check_fee(fee_bps: int) -> None:
    if fee_bps < 0:
        raise NegativeFee(f"Fee cannot be negative, got {fee_bps} bps")
    if fee_bps > MAX_PROTOCOL_FEE_BPS:
        raise FeeTooHigh(f"Fee {fee_bps} bps exceeds ceiling of {MAX_PROTOCOL_FEE_BPS}")


class AuthorizationRegistry(Contract):
    """Owner-gated allow-lists, nonces and fee policy."""

    __state__ = (
        "owner",
        "pending_owner",
        "authorized_relayers",
        "authorized_signers",
        "nonces",
        "protocol_fee_bps",
        "fee_recipient",
        "verifier",
    )

    def __init__(
        self,
        chain: LocalChain,
        owner: str,
        fee_recipient: Optional[str] = None,
        protocol_fee_bps: int = DEFAULT_PROTOCOL_FEE_BPS,
    ):
        super().__init__(chain)
        owner = normalize_address(owner)
        if owner == ZERO_ADDRESS:
            raise ZeroAddress("Registry owner cannot be the zero address")
        _check_fee(protocol_fee_bps)

        self.owner = owner
        self.pending_owner: Optional[str] = None
        self.authorized_relayers: Set[str] = set()
        self.authorized_signers: Set[str] = set()
        self.nonces: Dict[str, int] = {}
        self.protocol_fee_bps = protocol_fee_bps
        self.fee_recipient = normalize_address(fee_recipient) if fee_recipient else owner
        self.verifier: Optional[str] = None

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized(f"{caller} is not the registry owner")

    # -----------------------------
    # Views
    # -----------------------------

    def is_relayer(self, account: str) -> bool:
        return normalize_address(account) in self.authorized_relayers

    def is_signer(self, account: str) -> bool:
        return normalize_address(account) in self.authorized_signers

    def get_nonce(self, signer: str) -> int:
        return self.nonces.get(normalize_address(signer), 0)

    # -----------------------------
    # Allow-lists
    # -----------------------------

    @transactional
    def set_relayer_authorization(self, caller: str, account: str, authorized: bool) -> None:
        self._only_owner(caller)
        account = normalize_address(account)
        if (account in self.authorized_relayers) == authorized:
            return
        if authorized:
            self.authorized_relayers.add(account)
        else:
            self.authorized_relayers.discard(account)
        self.emit(RelayerAuthorizationChanged, account=account, authorized=authorized)
        logger.info(f"Relayer {account} authorization set to {authorized}")

    @transactional
    def set_signer_authorization(self, caller: str, account: str, authorized: bool) -> None:
        self._only_owner(caller)
        account = normalize_address(account)
        if (account in self.authorized_signers) == authorized:
            return
        if authorized:
            self.authorized_signers.add(account)
        else:
            # Revocation keeps the signer's nonce; a later re-authorization
            # resumes from the same counter.
            self.authorized_signers.discard(account)
        self.emit(SignerAuthorizationChanged, account=account, authorized=authorized)
        logger.info(f"Signer {account} authorization set to {authorized}")

    # -----------------------------
    # Fee policy
    # -----------------------------

    @transactional
    def set_protocol_fee(self, caller: str, fee_bps: int) -> None:
        self._only_owner(caller)
        _check_fee(fee_bps)
        old = self.protocol_fee_bps
        self.protocol_fee_bps = fee_bps
        self.emit(ProtocolFeeUpdated, old_fee_bps=old, new_fee_bps=fee_bps)
        logger.info(f"Protocol fee updated: {old} -> {fee_bps} bps")

    @transactional
    def set_fee_recipient(self, caller: str, recipient: str) -> None:
        self._only_owner(caller)
        recipient = normalize_address(recipient)
        if recipient == ZERO_ADDRESS:
            raise ZeroAddress("Fee recipient cannot be the zero address")
        self.fee_recipient = recipient
        self.emit(FeeRecipientUpdated, recipient=recipient)

    # -----------------------------
    # Ownership (two-step)
    # -----------------------------

    @transactional
    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """Propose a new owner. Control moves only once they accept."""
        self._only_owner(caller)
        new_owner = normalize_address(new_owner)
        if new_owner == ZERO_ADDRESS:
            raise ZeroAddress("New owner cannot be the zero address")
        self.pending_owner = new_owner
        self.emit(OwnershipTransferStarted, previous_owner=self.owner, new_owner=new_owner)

    @transactional
    def accept_ownership(self, caller: str) -> None:
        if self.pending_owner is None or caller != self.pending_owner:
            raise Unauthorized(f"{caller} is not the pending owner")
        previous = self.owner
        self.owner = caller
        self.pending_owner = None
        self.emit(OwnershipTransferred, previous_owner=previous, new_owner=caller)
        logger.info(f"Registry ownership transferred: {previous} -> {caller}")

    # -----------------------------
    # Nonces
    # -----------------------------

    @transactional
    def bind_verifier(self, caller: str, verifier: str) -> None:
        """Set the only contract allowed to consume signer nonces."""
        self._only_owner(caller)
        self.verifier = normalize_address(verifier)

    @transactional
    def consume_nonce(self, caller: str, signer: str, nonce: int) -> int:
        """
        Consume `nonce` for `signer` if it is exactly the next expected one.

        Returns:
            The signer's new next-expected nonce
        """
        if self.verifier is None or caller != self.verifier:
            raise Unauthorized(f"{caller} may not consume nonces")
        signer = normalize_address(signer)
        expected = self.nonces.get(signer, 0)
        if nonce != expected:
            raise InvalidNonce(f"Nonce {nonce} rejected for signer {signer}")
        self.nonces[signer] = expected + 1
        self.chain.consume_gas(STORAGE_WRITE_GAS)
        return expected + 1
