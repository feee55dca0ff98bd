# src/accrual/bridge/codec.py
from __future__ import annotations

import json
from typing import Any, Dict

from accrual.bridge.messages import ENVELOPE_VERSION, RelayEnvelope

Json = Dict[str, Any]


class WireDecodeError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


class WireEncodeError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


_STR_FIELDS = (
    "source_domain",
    "dest_domain",
    "source_adapter",
    "sender",
    "receiver",
    "payload_hex",
    "remote_token",
)


def dumps_json(obj: Any) -> bytes:
    try:
        return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise WireEncodeError("encode_failed", f"encode failed: {e}") from e


def loads_json(data: bytes | str) -> Any:
    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise WireDecodeError("invalid_json", f"invalid json: {e}") from e
    except UnicodeDecodeError as e:
        raise WireDecodeError("invalid_utf8", f"invalid utf-8: {e}") from e


def _coerce_int(v: Any, field: str) -> int:
    if isinstance(v, bool):
        raise WireDecodeError("invalid_int_field", f"Invalid int field '{field}': bool not allowed")
    if isinstance(v, int):
        return v
    # Big amounts travel as decimal strings.
    if isinstance(v, str) and v.isascii() and v.isdigit():
        return int(v)
    raise WireDecodeError("invalid_int_field", f"Invalid int field '{field}': expected int, got {type(v).__name__}")


def _coerce_str(v: Any, field: str) -> str:
    if isinstance(v, str) and v.strip():
        return v
    raise WireDecodeError("invalid_str_field", f"Invalid str field '{field}': expected non-empty str")


def envelope_to_json(env: RelayEnvelope) -> Json:
    d = env.body()
    if env.sig is not None:
        d["sig"] = env.sig
    return d


def envelope_from_json(raw: Any) -> RelayEnvelope:
    if not isinstance(raw, dict):
        raise WireDecodeError("invalid_message", "envelope must be an object")

    version = _coerce_int(raw.get("version", ENVELOPE_VERSION), "version")
    if version != ENVELOPE_VERSION:
        raise WireDecodeError("unsupported_version", f"Unsupported envelope version: {version}")

    fields = {k: _coerce_str(raw.get(k), k) for k in _STR_FIELDS}
    nonce = _coerce_int(raw.get("nonce"), "nonce")
    amount = _coerce_int(raw.get("amount"), "amount")
    if nonce < 0 or amount < 0:
        raise WireDecodeError("negative_int_field", "nonce/amount must be non-negative")

    sig = raw.get("sig")
    if sig is not None and not isinstance(sig, str):
        raise WireDecodeError("invalid_str_field", "Invalid str field 'sig'")

    return RelayEnvelope(version=version, nonce=nonce, amount=amount, sig=sig, **fields)


def encode_envelope(env: RelayEnvelope) -> bytes:
    return dumps_json(envelope_to_json(env))


def decode_envelope(data: bytes | str) -> RelayEnvelope:
    return envelope_from_json(loads_json(data))
