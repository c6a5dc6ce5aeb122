"""
Shared data models for the vault orchestrator.

These models are shared between the in-process vault core, the off-chain
optimizer that signs rebalance payloads and the relayer that submits them.
"""
from enum import Enum
from typing import Any, Dict, Optional

from eth_abi import decode as abi_decode, encode as abi_encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import to_bytes
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from protocol.errors import InvalidActionData

# (tickLower, tickUpper, reallocatePct) as produced by the optimizer
ACTION_DATA_TYPES = ["int24", "int24", "uint256"]


def _hex_to_bytes(value: Any) -> Any:
    if isinstance(value, str):
        return to_bytes(hexstr=value)
    return value


class StrategyParams(BaseModel):
    """Per-vault tunable range."""
    tick_lower: int = Field(..., description="Lower tick of the active range")
    tick_upper: int = Field(..., description="Upper tick of the active range")
    rebalance_threshold: int = Field(
        500, ge=0, le=10_000, description="Rebalance sensitivity in basis points"
    )
    auto_rebalance: bool = Field(True, description="Advisory auto-rebalance flag")


class VaultInfo(BaseModel):
    """One pooled LP position tracked by the ledger."""
    vault_id: int = Field(..., gt=0, description="Sequential vault id")
    owner: str = Field(..., description="Account that created the vault")
    token_a: str = Field(..., description="First asset of the pair")
    token_b: str = Field(..., description="Second asset of the pair")
    total_shares: int = Field(0, ge=0)
    total_token_a: int = Field(0, ge=0)
    total_token_b: int = Field(0, ge=0)
    strategy: Optional[str] = Field(None, description="Linked strategy contract")
    last_rebalance: int = Field(..., description="Unix time of last rebalance or creation")
    is_active: bool = Field(True)


class ActionKind(str, Enum):
    """Kinds of rebalance actions carried in a payload's action data."""
    RANGE = "range"


class RebalanceAction(BaseModel):
    """
    Decoded form of a payload's opaque action data.

    The ledger decodes action data exactly once, at its rebalance boundary.
    `reallocate_pct` is kept for wire compatibility; the ledger does not move
    balances based on it.
    """
    kind: ActionKind = Field(ActionKind.RANGE)
    tick_lower: int = Field(..., ge=-(2 ** 23), lt=2 ** 23)
    tick_upper: int = Field(..., ge=-(2 ** 23), lt=2 ** 23)
    reallocate_pct: int = Field(0, ge=0, lt=2 ** 256)

    def encode(self) -> bytes:
        """ABI-encode as (int24, int24, uint256)."""
        return abi_encode(
            ACTION_DATA_TYPES,
            [self.tick_lower, self.tick_upper, self.reallocate_pct],
        )

    @classmethod
    def decode(cls, data: bytes) -> "RebalanceAction":
        """
        Decode raw action data.

        Raises:
            InvalidActionData: If the bytes are not a valid (int24, int24, uint256) tuple
        """
        try:
            tick_lower, tick_upper, reallocate_pct = abi_decode(ACTION_DATA_TYPES, bytes(data))
        except (DecodingError, EncodingError, TypeError) as e:
            raise InvalidActionData(f"Cannot decode action data: {e}") from e
        return cls(
            kind=ActionKind.RANGE,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
            reallocate_pct=reallocate_pct,
        )


class RebalancePayload(BaseModel):
    """
    Signed, nonce-bound, time-bound rebalance instruction.

    Wire keys are camelCase (`vaultId`, `actionData`, ...); Python code may
    use either form when constructing.
    """
    model_config = ConfigDict(populate_by_name=True)

    vault_id: int = Field(..., alias="vaultId", gt=0, lt=2 ** 256)
    nonce: int = Field(..., ge=0, lt=2 ** 256)
    action_data: bytes = Field(..., alias="actionData")
    issued_at: int = Field(..., alias="issuedAt", ge=0, lt=2 ** 256)
    expiry: int = Field(..., ge=0, lt=2 ** 256)

    @field_validator("action_data", mode="before")
    @classmethod
    def parse_action_data(cls, value: Any) -> Any:
        return _hex_to_bytes(value)

    @field_serializer("action_data", when_used="json")
    def serialize_action_data(self, value: bytes) -> str:
        return "0x" + value.hex()

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready camelCase form."""
        return self.model_dump(by_alias=True, mode="json")

    def to_message(self) -> Dict[str, Any]:
        """EIP-712 message form (camelCase keys, raw bytes)."""
        return self.model_dump(by_alias=True)


class SignedPayload(BaseModel):
    """A payload together with its signer's 65-byte signature."""
    payload: RebalancePayload
    signature: str = Field(..., description="0x-prefixed r||s||v signature")

    def to_wire(self) -> Dict[str, Any]:
        return {"payload": self.payload.to_wire(), "signature": self.signature}
