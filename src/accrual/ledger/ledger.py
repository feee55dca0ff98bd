# src/accrual/ledger/ledger.py
from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, List, Optional

from accrual.ledger.auth import Authorizer, Capability, require
from accrual.ledger.constants import INITIAL_DEFAULT_RATE, MAX_UINT256
from accrual.ledger.types import Account, accrued_balance, as_uint
from accrual.runtime.clock import Clock, system_clock
from accrual.runtime.errors import InsufficientAllowance, InsufficientBalance, RateMustDecrease
from accrual.runtime.log import log_event
from accrual.runtime.metrics import inc_counter

Json = Dict[str, Any]

_EMPTY = Account()


def _key(v: Any) -> str:
    return str(v).strip() if v is not None else ""


def _holder_id(v: Any, field: str) -> str:
    s = _key(v)
    if not s:
        raise ValueError(f"{field} must be a non-empty string")
    return s


class AccrualLedger:
    """
    Lazy interest-accrual ledger.

    Each holder has an explicit (principal, rate, last_update) record and the
    current entitlement is computed on read:

        balance = principal * (PRECISION + rate * (now - last_update)) // PRECISION

    Growth is linear between materializations. Any mutation touching a holder
    first folds pending growth into principal ("materializes") and resets
    that holder's clock, so compounding only happens across mutations.
    Nothing ever iterates all holders on a hot path.

    Rate assignment:
      - mint always overwrites the recipient's rate with the given rate
      - transfer sets the recipient's rate to the sender's only when the
        recipient currently holds nothing

    All mutations run under one lock: a call either fully applies or raises
    an AccrualError before touching state.
    """

    def __init__(
        self,
        *,
        authorizer: Authorizer,
        clock: Clock = system_clock,
        default_rate: int = INITIAL_DEFAULT_RATE,
        domain_id: str = "local",
    ) -> None:
        self._auth = authorizer
        self._clock = clock
        self._default_rate = as_uint(default_rate, "default_rate")
        self.domain_id = str(domain_id)

        self._accounts: Dict[str, Account] = {}
        self._allowances: Dict[str, Dict[str, int]] = {}
        self._events: List[Json] = []

        self._lock = threading.RLock()
        self._log = logging.getLogger("accrual.ledger")

    # ----------------------------
    # Reads
    # ----------------------------

    def now(self) -> int:
        return int(self._clock())

    def atomic(self) -> threading.RLock:
        """Re-entrant ledger lock, for callers composing several mutations into one step."""
        return self._lock

    def current_default_rate(self) -> int:
        with self._lock:
            return self._default_rate

    def balance_of(self, holder: str) -> int:
        with self._lock:
            return self._balance(_key(holder), self.now())

    def principal_of(self, holder: str) -> int:
        with self._lock:
            return self._accounts.get(_key(holder), _EMPTY).principal

    def rate_of(self, holder: str) -> int:
        with self._lock:
            return self._accounts.get(_key(holder), _EMPTY).rate

    def last_update_of(self, holder: str) -> int:
        with self._lock:
            return self._accounts.get(_key(holder), _EMPTY).last_update

    def allowance(self, owner: str, spender: str) -> int:
        with self._lock:
            return self._allowances.get(_key(owner), {}).get(_key(spender), 0)

    def account(self, holder: str) -> Account:
        """Copy of the raw record (zeroed if the holder was never credited)."""
        with self._lock:
            return copy.copy(self._accounts.get(_key(holder), _EMPTY))

    def holders(self) -> List[str]:
        with self._lock:
            return sorted(self._accounts.keys())

    def total_principal(self) -> int:
        """Diagnostic sum of materialized principal. O(holders); never used by mutations."""
        with self._lock:
            return sum(a.principal for a in self._accounts.values())

    def events(self, since: int = 0) -> List[Json]:
        with self._lock:
            return [dict(e) for e in self._events[max(0, int(since)):]]

    # ----------------------------
    # Internals
    # ----------------------------

    def _balance(self, holder: str, now: int) -> int:
        acct = self._accounts.get(holder)
        if acct is None:
            return 0
        return accrued_balance(acct.principal, acct.rate, now - acct.last_update)

    def _materialize(self, holder: str, now: int) -> Account:
        acct = self._accounts.get(holder)
        if acct is None:
            acct = Account(principal=0, rate=0, last_update=now)
            self._accounts[holder] = acct
            return acct

        delta = self._balance(holder, now) - acct.principal
        acct.last_update = max(acct.last_update, now)
        acct.principal += delta
        return acct

    def _emit(self, event: str, now: int, **fields: Any) -> None:
        rec: Json = {"seq": len(self._events), "event": event, "ts": now, "domain": self.domain_id}
        rec.update(fields)
        self._events.append(rec)
        inc_counter(f"ledger_{event}_total")
        log_event(self._log, f"ledger_{event}", domain=self.domain_id, **fields)

    # ----------------------------
    # Gated mutations
    # ----------------------------

    def mint(self, caller: str, to: str, amount: int, rate: int) -> None:
        require(self._auth, caller, Capability.MINT_BURN)
        to = _holder_id(to, "to")
        amount = as_uint(amount, "amount")
        rate = as_uint(rate, "rate")

        with self._lock:
            now = self.now()
            acct = self._materialize(to, now)
            # Unconditional: a second deposit re-prices the whole position.
            acct.rate = rate
            acct.principal += amount
            self._emit("mint", now, to=to, amount=amount, rate=rate)

    def burn(self, caller: str, frm: str, amount: int) -> int:
        """Burn `amount` from `frm` (MAX_UINT256 burns the full current balance). Returns the amount burned."""
        require(self._auth, caller, Capability.MINT_BURN)
        frm = _holder_id(frm, "from")
        amount = as_uint(amount, "amount")

        with self._lock:
            now = self.now()
            available = self._balance(frm, now)
            if amount == MAX_UINT256:
                amount = available
            if amount > available:
                raise InsufficientBalance(details={"holder": frm, "balance": available, "amount": amount})

            acct = self._materialize(frm, now)
            acct.principal -= amount
            self._emit("burn", now, frm=frm, amount=amount)
            return amount

    def set_default_rate(self, caller: str, new_rate: int) -> None:
        require(self._auth, caller, Capability.ADMIN)
        new_rate = as_uint(new_rate, "new_rate")

        with self._lock:
            if new_rate >= self._default_rate:
                raise RateMustDecrease(details={"current": self._default_rate, "requested": new_rate})
            old = self._default_rate
            self._default_rate = new_rate
            self._emit("rate_set", self.now(), old_rate=old, new_rate=new_rate)

    # ----------------------------
    # Holder mutations
    # ----------------------------

    def approve(self, owner: str, spender: str, amount: int) -> None:
        owner = _holder_id(owner, "owner")
        spender = _holder_id(spender, "spender")
        amount = as_uint(amount, "amount")
        with self._lock:
            self._allowances.setdefault(owner, {})[spender] = amount
            self._emit("approval", self.now(), owner=owner, spender=spender, amount=amount)

    def transfer(self, frm: str, to: str, amount: int) -> int:
        """Move `amount` (MAX_UINT256 = everything) from `frm` to `to`. Returns the amount moved."""
        frm = _holder_id(frm, "from")
        to = _holder_id(to, "to")
        amount = as_uint(amount, "amount")
        with self._lock:
            return self._transfer(frm, to, amount, self.now())

    def transfer_from(self, spender: str, frm: str, to: str, amount: int) -> int:
        spender = _holder_id(spender, "spender")
        frm = _holder_id(frm, "from")
        to = _holder_id(to, "to")
        amount = as_uint(amount, "amount")

        with self._lock:
            now = self.now()
            if amount == MAX_UINT256:
                amount = self._balance(frm, now)

            allowed = self._allowances.get(frm, {}).get(spender, 0)
            if amount > allowed:
                raise InsufficientAllowance(
                    details={"owner": frm, "spender": spender, "allowance": allowed, "amount": amount}
                )

            moved = self._transfer(frm, to, amount, now)
            if allowed != MAX_UINT256:
                self._allowances[frm][spender] = allowed - moved
            return moved

    def _transfer(self, frm: str, to: str, amount: int, now: int) -> int:
        available = self._balance(frm, now)
        if amount == MAX_UINT256:
            amount = available
        if amount > available:
            raise InsufficientBalance(details={"holder": frm, "balance": available, "amount": amount})

        src = self._materialize(frm, now)
        dst = self._materialize(to, now)

        # Materialized, so principal == balance here.
        if dst.principal == 0:
            dst.rate = src.rate

        src.principal -= amount
        dst.principal += amount
        self._emit("transfer", now, frm=frm, to=to, amount=amount)
        return amount

    # ----------------------------
    # Persistence
    # ----------------------------

    def snapshot(self) -> Json:
        with self._lock:
            return {
                "domain_id": self.domain_id,
                "default_rate": self._default_rate,
                "accounts": {h: a.to_json() for h, a in sorted(self._accounts.items())},
                "allowances": copy.deepcopy(self._allowances),
            }

    @classmethod
    def from_snapshot(
        cls,
        state: Json,
        *,
        authorizer: Authorizer,
        clock: Clock = system_clock,
        domain_id: Optional[str] = None,
    ) -> "AccrualLedger":
        ledger = cls(
            authorizer=authorizer,
            clock=clock,
            default_rate=as_uint(state.get("default_rate", INITIAL_DEFAULT_RATE), "default_rate"),
            domain_id=domain_id or str(state.get("domain_id") or "local"),
        )
        accounts = state.get("accounts") if isinstance(state.get("accounts"), dict) else {}
        for holder, rec in accounts.items():
            if isinstance(rec, dict):
                ledger._accounts[_holder_id(holder, "holder")] = Account.from_json(rec)

        allowances = state.get("allowances") if isinstance(state.get("allowances"), dict) else {}
        for owner, by_spender in allowances.items():
            if not isinstance(by_spender, dict):
                continue
            ledger._allowances[str(owner)] = {str(s): as_uint(v, "allowance") for s, v in by_spender.items()}
        return ledger


__all__ = ["AccrualLedger"]
