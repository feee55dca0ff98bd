# src/accrual/vault/exchange.py
from __future__ import annotations

import logging
from typing import Any, Dict, Protocol

from accrual.ledger.auth import Authorizer, Capability, require
from accrual.ledger.constants import MAX_UINT256
from accrual.ledger.ledger import AccrualLedger
from accrual.ledger.types import as_uint
from accrual.runtime.errors import InsufficientBalance, InvalidAmount, PayoutFailed
from accrual.runtime.log import log_event
from accrual.runtime.metrics import inc_counter


class PayoutSink(Protocol):
    """Moves base asset out to a holder. Returns False when the transfer did not go through."""

    def pay(self, holder: str, value: int) -> bool: ...


class InMemoryPayoutSink:
    def __init__(self) -> None:
        self.paid: Dict[str, int] = {}
        self.refuse: set[str] = set()

    def pay(self, holder: str, value: int) -> bool:
        if holder in self.refuse:
            return False
        self.paid[holder] = self.paid.get(holder, 0) + int(value)
        return True


class ExchangeWrapper:
    """
    Base asset <-> ledger exchange.

    deposit: base asset in, principal minted at the ledger's current default rate
    redeem:  principal burned (MAX_UINT256 = full current balance), base asset out

    The wrapper holds the base-asset reserve. Interest is paid from the same
    reserve, so operators top it up with fund_rewards().

    redeem checks balance and reserve and performs the payout before burning,
    all under the ledger lock; a refused payout raises PayoutFailed with the
    ledger untouched.
    """

    def __init__(
        self,
        *,
        ledger: AccrualLedger,
        authorizer: Authorizer,
        address: str,
        payout: PayoutSink,
    ) -> None:
        self.ledger = ledger
        self.address = str(address)
        self._auth = authorizer
        self._payout = payout
        self._reserve = 0
        self._log = logging.getLogger("accrual.vault")

    def reserve(self) -> int:
        with self.ledger.atomic():
            return self._reserve

    def fund_rewards(self, caller: str, value: int) -> int:
        require(self._auth, caller, Capability.ADMIN)
        value = as_uint(value, "value")
        with self.ledger.atomic():
            self._reserve += value
            log_event(self._log, "vault_rewards_funded", value=value, reserve=self._reserve)
            return self._reserve

    def deposit(self, holder: str, value: int) -> int:
        value = as_uint(value, "value")
        if value == 0:
            raise InvalidAmount(reason="deposit_must_be_positive", details={"value": 0})

        with self.ledger.atomic():
            rate = self.ledger.current_default_rate()
            self.ledger.mint(self.address, holder, value, rate)
            self._reserve += value

        inc_counter("vault_deposit_total")
        log_event(self._log, "vault_deposit", holder=str(holder), value=value, rate=rate)
        return value

    def redeem(self, holder: str, amount: int) -> int:
        amount = as_uint(amount, "amount")

        with self.ledger.atomic():
            available = self.ledger.balance_of(holder)
            if amount == MAX_UINT256:
                amount = available
            if amount > available:
                raise InsufficientBalance(details={"holder": str(holder), "balance": available, "amount": amount})
            if amount > self._reserve:
                raise PayoutFailed(reason="insufficient_reserve", details={"reserve": self._reserve, "amount": amount})

            if not self._payout.pay(str(holder), amount):
                raise PayoutFailed(details={"holder": str(holder), "amount": amount})

            self.ledger.burn(self.address, holder, amount)
            self._reserve -= amount

        inc_counter("vault_redeem_total")
        log_event(self._log, "vault_redeem", holder=str(holder), amount=amount)
        return amount

    def snapshot(self) -> Dict[str, str]:
        with self.ledger.atomic():
            return {"reserve": str(self._reserve)}

    def restore(self, state: Dict[str, Any]) -> None:
        with self.ledger.atomic():
            self._reserve = as_uint(int(state.get("reserve", 0)), "reserve")


__all__ = ["ExchangeWrapper", "InMemoryPayoutSink", "PayoutSink"]
