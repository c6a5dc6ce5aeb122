"""
Event records emitted by the vault core.

Events are appended to the local chain's log when the emitting transaction
commits; events from a reverted transaction are discarded with it.
"""
from typing import Optional

from pydantic import BaseModel, Field


class Event(BaseModel):
    """Base event record."""
    emitter: str = Field(..., description="Address of the emitting contract")
    tx_hash: Optional[str] = Field(None, description="Transaction that emitted the event")

    @property
    def name(self) -> str:
        return type(self).__name__


# Ledger

class VaultCreated(Event):
    vault_id: int
    owner: str
    token_a: str
    token_b: str


class Deposit(Event):
    vault_id: int
    user: str
    amount_a: int
    amount_b: int
    shares: int


class Withdraw(Event):
    vault_id: int
    user: str
    shares: int
    amount_a: int
    amount_b: int


class Rebalanced(Event):
    vault_id: int
    executor: str
    details_hash: str = Field(..., description="keccak256 of the raw action data")


class ProtocolFeeCollected(Event):
    vault_id: int
    token: str
    recipient: str
    amount: int


class VaultStatusChanged(Event):
    vault_id: int
    is_active: bool


class VaultStrategyChanged(Event):
    vault_id: int
    strategy: Optional[str]


class Paused(Event):
    account: str


class Unpaused(Event):
    account: str


# Registry

class RelayerAuthorizationChanged(Event):
    account: str
    authorized: bool


class SignerAuthorizationChanged(Event):
    account: str
    authorized: bool


class ProtocolFeeUpdated(Event):
    old_fee_bps: int
    new_fee_bps: int


class FeeRecipientUpdated(Event):
    recipient: str


class OwnershipTransferStarted(Event):
    previous_owner: str
    new_owner: str


class OwnershipTransferred(Event):
    previous_owner: str
    new_owner: str


# Executor

class RebalanceExecuted(Event):
    vault_id: int
    signer: str
    nonce: int
    gas_used: int


# Strategy manager

class StrategyRegistered(Event):
    strategy: str


class StrategyUnregistered(Event):
    strategy: str


class VolatilityThresholdUpdated(Event):
    threshold_bps: int


# Tokens

class Transfer(Event):
    sender: str
    recipient: str
    amount: int


class Approval(Event):
    owner: str
    spender: str
    amount: int
