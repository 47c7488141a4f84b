"""
In-memory token ledger.

Implements the SourceToken contract (and the mint/custody side the vesting schedule
needs for the destination token) with integer balances and an optional supply cap.
It also offers ``transfer_and_call``, the notification hook the reconciliation
settler listens on.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Optional

from tokenmigration.core.exceptions import InsufficientBalance, ZeroAmount

logger = logging.getLogger("tokenmigration.tokens.token_ledger")


class TokenLedger:
    def __init__(self, address: str, symbol: str, supply_cap: Optional[int] = None):
        if not address:
            raise ValueError("Token address cannot be empty.")
        if supply_cap is not None and supply_cap <= 0:
            raise ValueError("Supply cap must be a positive integer.")
        self.address = address
        self.symbol = symbol
        self.supply_cap = supply_cap
        self.total_supply = 0
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[str, Dict[str, int]] = {}
        logger.info("TokenLedger %s initialized at %s (cap %s)", symbol, address, supply_cap)

    @staticmethod
    def _validate_amount(amount: Any) -> int:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise ValueError("Token amount must be a non-negative integer.")
        if amount == 0:
            raise ZeroAmount("Token amount must be positive.")
        return amount

    def _debit(self, holder: str, amount: int) -> None:
        balance = self.balances.get(holder, 0)
        if balance < amount:
            raise InsufficientBalance(
                f"{holder} holds {balance} {self.symbol}, needs {amount}.",
                details={"token": self.symbol, "holder": holder, "balance": balance, "amount": amount},
            )
        self.balances[holder] = balance - amount

    def _credit(self, holder: str, amount: int) -> None:
        self.balances[holder] = self.balances.get(holder, 0) + amount

    def balance_of(self, holder: str) -> int:
        return self.balances.get(holder, 0)

    def mint(self, recipient: str, amount: int) -> None:
        amount = self._validate_amount(amount)
        if self.supply_cap is not None and self.total_supply + amount > self.supply_cap:
            raise ValueError(
                f"Cannot mint {amount} {self.symbol}: exceeds supply cap {self.supply_cap} "
                f"(current supply {self.total_supply})."
            )
        self.total_supply += amount
        self._credit(recipient, amount)
        logger.debug("Minted %s %s to %s", amount, self.symbol, recipient)

    def burn_from(self, holder: str, amount: int) -> None:
        amount = self._validate_amount(amount)
        self._debit(holder, amount)
        self.total_supply -= amount
        logger.debug("Burned %s %s from %s", amount, self.symbol, holder)

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        amount = self._validate_amount(amount)
        self._debit(sender, amount)
        self._credit(recipient, amount)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if not isinstance(amount, int) or amount < 0:
            raise ValueError("Allowance must be a non-negative integer.")
        self.allowances.setdefault(owner, {})[spender] = amount

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(owner, {}).get(spender, 0)

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> None:
        amount = self._validate_amount(amount)
        allowed = self.allowance(sender, spender)
        if allowed < amount:
            raise InsufficientBalance(
                f"{spender} may move {allowed} {self.symbol} for {sender}, needs {amount}.",
                details={"token": self.symbol, "allowance": allowed, "amount": amount},
            )
        self._debit(sender, amount)
        self._credit(recipient, amount)
        self.allowances[sender][spender] = allowed - amount

    def transfer_and_call(self, sender: str, recipient: Any, amount: int, data: Any = None) -> None:
        """
        Transfer to ``recipient.address`` and notify it via ``on_token_transfer``.

        The receiver runs inside the same call, so a rejected notification leaves
        balances exactly as they were.
        """
        state = self.snapshot()
        self.transfer(sender, recipient.address, amount)
        try:
            recipient.on_token_transfer(self, sender, amount, data)
        except BaseException:
            self.restore(state)
            raise

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_supply": self.total_supply,
            "balances": dict(self.balances),
            "allowances": copy.deepcopy(self.allowances),
        }

    def restore(self, state: Dict[str, Any]) -> None:
        self.total_supply = state["total_supply"]
        self.balances = dict(state["balances"])
        self.allowances = copy.deepcopy(state["allowances"])
