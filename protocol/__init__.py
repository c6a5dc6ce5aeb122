"""
Package containing protocol related logic for the vault orchestrator.

This package defines the shared data models, named errors, event records
and EIP-712 payload hashing used by the vault core, the optimizer and the
relayer.
"""

from protocol.models import (
    ActionKind,
    RebalanceAction,
    RebalancePayload,
    SignedPayload,
    StrategyParams,
    VaultInfo,
)
from protocol.eip712 import (
    EIP712Domain,
    hash_payload,
    payload_digest,
    recover_signer,
    sign_payload,
    typed_data,
)

__all__ = [
    # Shared Models
    "ActionKind",
    "RebalanceAction",
    "RebalancePayload",
    "SignedPayload",
    "StrategyParams",
    "VaultInfo",
    # EIP-712
    "EIP712Domain",
    "hash_payload",
    "payload_digest",
    "recover_signer",
    "sign_payload",
    "typed_data",
]
