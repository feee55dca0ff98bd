from __future__ import annotations

from typing import Any

from accrual.ledger.constants import MAX_UINT256, UINT256_BYTES
from accrual.runtime.errors import MalformedPayload


def encode_rate(rate: int) -> bytes:
    """Encode the exporter's rate as one 32-byte big-endian unsigned word."""
    if isinstance(rate, bool) or not isinstance(rate, int) or rate < 0 or rate > MAX_UINT256:
        raise MalformedPayload(reason="rate_not_uint256", details={"rate": repr(rate)})
    return rate.to_bytes(UINT256_BYTES, "big")


def decode_rate(payload: Any) -> int:
    if isinstance(payload, bytearray):
        payload = bytes(payload)
    if not isinstance(payload, bytes):
        raise MalformedPayload(reason="payload_not_bytes", details={"got": type(payload).__name__})
    if len(payload) != UINT256_BYTES:
        raise MalformedPayload(reason="bad_payload_length", details={"len": len(payload), "want": UINT256_BYTES})
    return int.from_bytes(payload, "big")


def payload_from_hex(s: Any) -> bytes:
    if not isinstance(s, str):
        raise MalformedPayload(reason="payload_hex_not_str", details={"got": type(s).__name__})
    h = s[2:] if s.startswith(("0x", "0X")) else s
    try:
        return bytes.fromhex(h)
    except ValueError as e:
        raise MalformedPayload(reason="payload_not_hex", details={"error": str(e)}) from e
