from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from accrual.ledger.constants import MAX_UINT256, PRECISION
from accrual.runtime.errors import InvalidAmount

Json = Dict[str, Any]


@dataclass(slots=True)
class Account:
    """
    Per-holder accrual record.

    principal:   balance as of last_update (pending growth excluded)
    rate:        personal fixed-point accrual rate (scaled by PRECISION)
    last_update: seconds; the moment principal was last materialized
    """

    principal: int = 0
    rate: int = 0
    last_update: int = 0

    def to_json(self) -> Json:
        return {"principal": int(self.principal), "rate": int(self.rate), "last_update": int(self.last_update)}

    @classmethod
    def from_json(cls, obj: Json) -> "Account":
        return cls(
            principal=as_uint(obj.get("principal", 0), "principal"),
            rate=as_uint(obj.get("rate", 0), "rate"),
            last_update=as_uint(obj.get("last_update", 0), "last_update"),
        )


def growth(rate: int, elapsed: int) -> int:
    """Linear growth factor over `elapsed` seconds, scaled by PRECISION."""
    return PRECISION + int(rate) * max(0, int(elapsed))


def accrued_balance(principal: int, rate: int, elapsed: int) -> int:
    if principal == 0:
        return 0
    return int(principal) * growth(rate, elapsed) // PRECISION


def as_uint(v: Any, field: str) -> int:
    """Strict unsigned-int coercion for amounts and rates (bool rejected)."""
    if isinstance(v, bool) or not isinstance(v, int):
        raise InvalidAmount(details={"field": field, "got": type(v).__name__})
    if v < 0 or v > MAX_UINT256:
        raise InvalidAmount(details={"field": field, "value": str(v)})
    return v
