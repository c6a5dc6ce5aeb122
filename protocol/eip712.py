"""
EIP-712 typed-data hashing for rebalance payloads.

The domain is keyed by a protocol name/version pair, the chain id and the
verifying contract, so a payload signed for one deployment never verifies
against another.
"""
from typing import Any, Dict, Union

from eth_abi import encode as abi_encode
from eth_account import Account
from eth_account.messages import SignableMessage
from eth_keys.exceptions import BadSignature, ValidationError as KeysValidationError
from eth_utils import keccak, to_bytes
from pydantic import BaseModel, Field

from protocol.errors import InvalidSignature
from protocol.models import RebalancePayload

EIP712_DOMAIN_TYPE = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
REBALANCE_PAYLOAD_TYPE = (
    "RebalancePayload(uint256 vaultId,uint256 nonce,bytes actionData,uint256 issuedAt,uint256 expiry)"
)
DOMAIN_TYPEHASH = keccak(text=EIP712_DOMAIN_TYPE)
PAYLOAD_TYPEHASH = keccak(text=REBALANCE_PAYLOAD_TYPE)

TYPED_DATA_TYPES: Dict[str, Any] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "RebalancePayload": [
        {"name": "vaultId", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "actionData", "type": "bytes"},
        {"name": "issuedAt", "type": "uint256"},
        {"name": "expiry", "type": "uint256"},
    ],
}


class EIP712Domain(BaseModel):
    """Signing domain of one verifier deployment."""
    name: str = Field(..., description="Protocol name")
    version: str = Field(..., description="Protocol version")
    chain_id: int = Field(..., gt=0, description="Chain the verifier lives on")
    verifying_contract: str = Field(..., description="Verifier address")

    def separator(self) -> bytes:
        """keccak256 domain separator."""
        return keccak(
            abi_encode(
                ["bytes32", "bytes32", "bytes32", "uint256", "address"],
                [
                    DOMAIN_TYPEHASH,
                    keccak(text=self.name),
                    keccak(text=self.version),
                    self.chain_id,
                    self.verifying_contract,
                ],
            )
        )

    def to_typed_data(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }


def hash_payload(payload: RebalancePayload) -> bytes:
    """Struct hash over (vaultId, nonce, keccak(actionData), issuedAt, expiry)."""
    return keccak(
        abi_encode(
            ["bytes32", "uint256", "uint256", "bytes32", "uint256", "uint256"],
            [
                PAYLOAD_TYPEHASH,
                payload.vault_id,
                payload.nonce,
                keccak(payload.action_data),
                payload.issued_at,
                payload.expiry,
            ],
        )
    )


def signable_payload(domain: EIP712Domain, payload: RebalancePayload) -> SignableMessage:
    return SignableMessage(
        version=b"\x01",
        header=domain.separator(),
        body=hash_payload(payload),
    )


def payload_digest(domain: EIP712Domain, payload: RebalancePayload) -> bytes:
    """Final digest that is signed: keccak256(0x1901 || separator || structHash)."""
    return keccak(b"\x19\x01" + domain.separator() + hash_payload(payload))


def typed_data(domain: EIP712Domain, payload: RebalancePayload) -> Dict[str, Any]:
    """Full eth_signTypedData_v4 document for wallets and external signers."""
    return {
        "types": TYPED_DATA_TYPES,
        "primaryType": "RebalancePayload",
        "domain": domain.to_typed_data(),
        "message": payload.to_message(),
    }


def sign_payload(
    domain: EIP712Domain, payload: RebalancePayload, private_key: Union[str, bytes]
) -> str:
    """Sign a payload and return the 0x-prefixed 65-byte signature."""
    signed = Account.sign_message(signable_payload(domain, payload), private_key=private_key)
    return "0x" + bytes(signed.signature).hex()


def recover_signer(
    domain: EIP712Domain, payload: RebalancePayload, signature: Union[str, bytes]
) -> str:
    """
    Recover the checksum address that signed `payload` under `domain`.

    Raises:
        InvalidSignature: If the signature is malformed or unrecoverable
    """
    try:
        raw = to_bytes(hexstr=signature) if isinstance(signature, str) else bytes(signature)
    except (ValueError, TypeError) as e:
        raise InvalidSignature(f"Signature is not valid hex: {e}") from e
    if len(raw) != 65:
        raise InvalidSignature(f"Signature must be 65 bytes, got {len(raw)}")
    try:
        return Account.recover_message(signable_payload(domain, payload), signature=raw)
    except (ValueError, TypeError, BadSignature, KeysValidationError) as e:
        raise InvalidSignature(f"Signature could not be recovered: {e}") from e
