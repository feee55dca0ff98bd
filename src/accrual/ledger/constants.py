# src/accrual/ledger/constants.py
"""Fixed-point and sentinel constants shared by the ledger and the bridge.

- Rates are fixed point with 18 decimals: a rate of PRECISION would double
  a balance every second, so practical rates are tiny (e.g. 5e10).
- MAX_UINT256 is the "everything" sentinel for burn/transfer/redeem amounts.
- The bridge payload is a single 32-byte unsigned word.
"""

from __future__ import annotations

PRECISION_DECIMALS: int = 18
PRECISION: int = 10**PRECISION_DECIMALS

UINT256_BYTES: int = 32
MAX_UINT256: int = 2 ** (8 * UINT256_BYTES) - 1

# Rate handed to genuinely new depositors when a domain config does not set one.
# 5e10 per second ~= 0.018% per hour, linear between materializations.
INITIAL_DEFAULT_RATE: int = 5 * 10**10
