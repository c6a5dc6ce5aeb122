from typing import Optional

from eth_utils import keccak
from web3 import Web3

from protocol.errors import InvalidAddress

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def normalize_address(addr: Optional[str]) -> str:
    """Checksum an address; None maps to the zero address."""
    if addr is None:
        return ZERO_ADDRESS
    try:
        return Web3.to_checksum_address(addr)
    except (ValueError, TypeError) as e:
        raise InvalidAddress(f"Not a valid address: {addr!r}") from e


def derive_address(label: str, index: int) -> str:
    """Deterministic contract address for the local chain."""
    return Web3.to_checksum_address(to_hex(keccak(text=f"{label}:{index}")[-20:]))


def to_hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()
