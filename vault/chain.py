"""
In-process execution environment for the vault contracts.

LocalChain plays the part of the blockchain: it owns the clock, assigns
contract addresses, meters gas and, most importantly, makes every top-level
operation atomic. A transaction snapshots the state of every deployed
contract; if anything inside it raises, all contract state is restored and
the events it emitted are dropped.
"""
import copy
import functools
import logging
import time
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

from eth_utils import keccak
from pydantic import BaseModel, Field

from protocol.errors import ReentrantCall
from protocol.events import Event
from vault.utils.web3 import derive_address, normalize_address

logger = logging.getLogger(__name__)

# Fixed gas schedule. Approximates the EVM costs of the dominant operations.
TX_BASE_GAS = 21_000
CALL_GAS = 2_600
LOG_GAS = 1_125
ECRECOVER_GAS = 3_000
STORAGE_WRITE_GAS = 5_000

E = TypeVar("E", bound=Event)
F = TypeVar("F", bound=Callable[..., Any])


class TxStatus(str, Enum):
    SUCCESS = "success"
    REVERTED = "reverted"


class Receipt(BaseModel):
    """Outcome of one top-level transaction."""
    tx_hash: str
    sender: str
    block_number: int
    timestamp: int
    status: TxStatus
    gas_used: int
    error: Optional[str] = Field(None, description="Error class and message when reverted")


class LocalChain:
    """Single-threaded, fully serialized execution environment."""

    def __init__(self, chain_id: int, timestamp: Optional[int] = None):
        self.chain_id = chain_id
        self.timestamp = int(time.time()) if timestamp is None else timestamp
        self.block_number = 0
        self.contracts: Dict[str, "Contract"] = {}
        self.logs: List[Event] = []
        self.receipts: Dict[str, Receipt] = {}
        self.gas_used = 0
        self.current_tx: Optional[str] = None

        self._pending_logs: List[Event] = []
        self._depth = 0
        self._tx_count = 0

    # -----------------------------
    # Clock
    # -----------------------------

    @property
    def now(self) -> int:
        return self.timestamp

    def advance_time(self, seconds: int) -> int:
        self.timestamp += seconds
        return self.timestamp

    def set_time(self, timestamp: int) -> None:
        self.timestamp = timestamp

    # -----------------------------
    # Contracts
    # -----------------------------

    def register(self, contract: "Contract") -> str:
        address = derive_address(type(contract).__name__, len(self.contracts))
        self.contracts[address] = contract
        logger.debug(f"Deployed {type(contract).__name__} at {address}")
        return address

    def get_contract(self, address: str) -> Optional["Contract"]:
        return self.contracts.get(normalize_address(address))

    # -----------------------------
    # Transactions
    # -----------------------------

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self, sender: str) -> Iterator[str]:
        """
        Run the enclosed block as one atomic transaction.

        Nested calls join the enclosing transaction. Yields the hash of the
        (outermost) transaction.
        """
        if self._depth > 0:
            self._depth += 1
            try:
                yield self.current_tx
            finally:
                self._depth -= 1
            return

        self._tx_count += 1
        tx_hash = "0x" + keccak(text=f"{self.chain_id}:{self._tx_count}:{sender}").hex()
        snapshot = {addr: c.snapshot() for addr, c in self.contracts.items()}
        deployed = set(self.contracts)

        self._depth = 1
        self.current_tx = tx_hash
        self._pending_logs = []
        self.gas_used = TX_BASE_GAS
        try:
            yield tx_hash
        except BaseException as e:
            for addr in list(self.contracts):
                if addr not in deployed:
                    del self.contracts[addr]
            for addr, state in snapshot.items():
                self.contracts[addr].restore(state)
            self._record_receipt(tx_hash, sender, TxStatus.REVERTED, f"{type(e).__name__}: {e}")
            logger.debug(f"Transaction {tx_hash} reverted: {type(e).__name__}: {e}")
            raise
        else:
            self.logs.extend(self._pending_logs)
            self._record_receipt(tx_hash, sender, TxStatus.SUCCESS, None)
        finally:
            self._pending_logs = []
            self._depth = 0
            self.current_tx = None

    def _record_receipt(
        self, tx_hash: str, sender: str, status: TxStatus, error: Optional[str]
    ) -> None:
        self.block_number += 1
        self.receipts[tx_hash] = Receipt(
            tx_hash=tx_hash,
            sender=sender,
            block_number=self.block_number,
            timestamp=self.timestamp,
            status=status,
            gas_used=self.gas_used,
            error=error,
        )

    def consume_gas(self, units: int) -> None:
        self.gas_used += units

    def record(self, event: Event) -> None:
        if self._depth == 0:
            raise RuntimeError("Events can only be emitted inside a transaction")
        self.consume_gas(LOG_GAS)
        self._pending_logs.append(event)

    def events(
        self, event_type: Optional[Type[E]] = None, emitter: Optional[str] = None
    ) -> List[Event]:
        """Committed events, optionally filtered by type and emitter."""
        return [
            ev for ev in self.logs
            if (event_type is None or isinstance(ev, event_type))
            and (emitter is None or ev.emitter == emitter)
        ]


class Contract:
    """
    Base class for contracts living on a LocalChain.

    Subclasses list their mutable storage attributes in `__state__`; those
    attributes are snapshotted and restored around each transaction.
    """

    __state__: Tuple[str, ...] = ()

    def __init__(self, chain: LocalChain):
        self.chain = chain
        self._entered = False
        self.address = chain.register(self)

    @property
    def now(self) -> int:
        return self.chain.now

    def snapshot(self) -> Dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self.__state__}

    def restore(self, state: Dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)
        self._entered = False

    def emit(self, event_type: Type[E], **fields: Any) -> E:
        event = event_type(emitter=self.address, tx_hash=self.chain.current_tx, **fields)
        self.chain.record(event)
        logger.debug(f"{type(self).__name__} emitted {event.name}: {fields}")
        return event


def transactional(fn: F) -> F:
    """Run a `(self, caller, ...)` entry point inside a chain transaction."""

    @functools.wraps(fn)
    def wrapper(self: Contract, caller: str, *args: Any, **kwargs: Any) -> Any:
        caller = normalize_address(caller)
        with self.chain.transaction(caller):
            return fn(self, caller, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


def non_reentrant(fn: F) -> F:
    """Reject nested entry into any guarded method of the same contract."""

    @functools.wraps(fn)
    def wrapper(self: Contract, *args: Any, **kwargs: Any) -> Any:
        if self._entered:
            raise ReentrantCall(f"Reentrant call into {type(self).__name__}.{fn.__name__}")
        self._entered = True
        try:
            return fn(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper  # type: ignore[return-value]
