from __future__ import annotations

from accrual.ledger.auth import Authorizer, Capability, RoleRegistry
from accrual.ledger.constants import MAX_UINT256, PRECISION
from accrual.ledger.ledger import AccrualLedger
from accrual.ledger.types import Account, accrued_balance, growth

__all__ = [
    "Account",
    "AccrualLedger",
    "Authorizer",
    "Capability",
    "MAX_UINT256",
    "PRECISION",
    "RoleRegistry",
    "accrued_balance",
    "growth",
]
