"""
Mock ERC-20 tokens for the local chain.

Only the transfer/allowance surface the ledger relies on is modeled.
"""
import logging
from typing import Dict

from protocol.errors import InsufficientAllowance, InsufficientBalance, ZeroAddress
from protocol.events import Approval, Transfer
from vault.chain import CALL_GAS, Contract, LocalChain, transactional
from vault.utils.web3 import ZERO_ADDRESS, normalize_address

logger = logging.getLogger(__name__)


class MockERC20(Contract):
    """Freely mintable ERC-20 token."""

    __state__ = ("balances", "allowances", "total_supply")

    def __init__(self, chain: LocalChain, name: str, symbol: str, decimals: int = 18):
        super().__init__(chain)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[str, Dict[str, int]] = {}
        self.total_supply = 0

    def balance_of(self, account: str) -> int:
        return self.balances.get(normalize_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(normalize_address(owner), {}).get(normalize_address(spender), 0)

    @transactional
    def mint(self, caller: str, to: str, amount: int) -> None:
        to = normalize_address(to)
        if to == ZERO_ADDRESS:
            raise ZeroAddress("Cannot mint to the zero address")
        self.balances[to] = self.balances.get(to, 0) + amount
        self.total_supply += amount
        self.emit(Transfer, sender=ZERO_ADDRESS, recipient=to, amount=amount)

    @transactional
    def approve(self, caller: str, spender: str, amount: int) -> bool:
        spender = normalize_address(spender)
        self.allowances.setdefault(caller, {})[spender] = amount
        self.emit(Approval, owner=caller, spender=spender, amount=amount)
        return True

    @transactional
    def transfer(self, caller: str, to: str, amount: int) -> bool:
        self._move(caller, normalize_address(to), amount)
        return True

    @transactional
    def transfer_from(self, caller: str, sender: str, to: str, amount: int) -> bool:
        sender = normalize_address(sender)
        allowed = self.allowance(sender, caller)
        if allowed < amount:
            raise InsufficientAllowance(
                f"{self.symbol}: allowance {allowed} of {caller} over {sender} is below {amount}"
            )
        self.allowances.setdefault(sender, {})[caller] = allowed - amount
        self._move(sender, normalize_address(to), amount)
        return True

    def _move(self, sender: str, to: str, amount: int) -> None:
        self.chain.consume_gas(CALL_GAS)
        if to == ZERO_ADDRESS:
            raise ZeroAddress(f"{self.symbol}: transfer to the zero address")
        balance = self.balances.get(sender, 0)
        if amount < 0 or balance < amount:
            raise InsufficientBalance(
                f"{self.symbol}: balance {balance} of {sender} is below {amount}"
            )
        self.balances[sender] = balance - amount
        self.balances[to] = self.balances.get(to, 0) + amount
        self.emit(Transfer, sender=sender, recipient=to, amount=amount)
