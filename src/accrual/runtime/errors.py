from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

Json = Dict[str, Any]


@dataclass
class AccrualError(Exception):
    """Canonical error type for ledger, adapter and wrapper failures.

    Mutating calls validate before they touch state, so any of these
    leaves the ledger exactly as it was.
    """

    code: str
    reason: str
    details: Optional[Json] = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


# ----------------------------
# Ledger
# ----------------------------

@dataclass
class InsufficientBalance(AccrualError):
    code: str = "insufficient_balance"
    reason: str = "amount_exceeds_balance"


@dataclass
class InsufficientAllowance(AccrualError):
    code: str = "insufficient_allowance"
    reason: str = "amount_exceeds_allowance"


@dataclass
class RateMustDecrease(AccrualError):
    code: str = "rate_must_decrease"
    reason: str = "new_rate_not_lower"


@dataclass
class Unauthorized(AccrualError):
    code: str = "unauthorized"
    reason: str = "capability_required"


@dataclass
class InvalidAmount(AccrualError):
    code: str = "invalid_amount"
    reason: str = "expected_non_negative_int"


# ----------------------------
# Bridge
# ----------------------------

@dataclass
class UnknownRemoteDomain(AccrualError):
    code: str = "unknown_remote_domain"
    reason: str = "domain_not_registered"


@dataclass
class MalformedPayload(AccrualError):
    code: str = "malformed_payload"
    reason: str = "payload_decode_failed"


@dataclass
class DomainAlreadyRegistered(AccrualError):
    code: str = "domain_already_registered"
    reason: str = "domain_exists"


@dataclass
class InvalidRateLimitConfig(AccrualError):
    code: str = "invalid_rate_limit_config"
    reason: str = "bad_rate_limit"


@dataclass
class BadSignature(AccrualError):
    code: str = "bad_signature"
    reason: str = "envelope_signature_invalid"


@dataclass
class WrongDestination(AccrualError):
    code: str = "wrong_destination"
    reason: str = "envelope_not_for_this_domain"


@dataclass
class PayloadTooLarge(AccrualError):
    code: str = "payload_too_large"
    reason: str = "exceeds_relay_limit"


# ----------------------------
# Exchange wrapper
# ----------------------------

@dataclass
class PayoutFailed(AccrualError):
    code: str = "payout_failed"
    reason: str = "base_asset_transfer_failed"


__all__ = [
    "AccrualError",
    "BadSignature",
    "DomainAlreadyRegistered",
    "InsufficientAllowance",
    "InsufficientBalance",
    "InvalidAmount",
    "InvalidRateLimitConfig",
    "MalformedPayload",
    "PayloadTooLarge",
    "PayoutFailed",
    "RateMustDecrease",
    "Unauthorized",
    "UnknownRemoteDomain",
    "WrongDestination",
]
