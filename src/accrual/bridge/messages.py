from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

Json = Dict[str, Any]

DomainId = str
HexDigest = str

ENVELOPE_VERSION = 1


def _json_canonical(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


@dataclass(frozen=True, slots=True)
class RelayEnvelope:
    """
    Relay-level message for one cross-domain transfer.

    The adapter payload (payload_hex) carries only the rate; amount and
    receiver are envelope addressing. `nonce` is per (source, dest) pair
    and only makes otherwise-identical transfers distinct.
    """

    source_domain: DomainId
    dest_domain: DomainId
    source_adapter: str
    nonce: int
    sender: str
    receiver: str
    amount: int
    payload_hex: str
    remote_token: str
    version: int = ENVELOPE_VERSION
    sig: Optional[str] = None

    def body(self) -> Json:
        """Signed/hashed fields (everything except sig)."""
        return {
            "version": int(self.version),
            "source_domain": self.source_domain,
            "dest_domain": self.dest_domain,
            "source_adapter": self.source_adapter,
            "nonce": int(self.nonce),
            "sender": self.sender,
            "receiver": self.receiver,
            # Amounts can exceed 2**53; keep them exact for non-Python relays.
            "amount": str(int(self.amount)),
            "payload_hex": self.payload_hex,
            "remote_token": self.remote_token,
        }

    def signing_bytes(self) -> bytes:
        return _json_canonical(self.body())

    @property
    def msg_id(self) -> HexDigest:
        """Idempotency key: sha256 of the canonical body (sig excluded)."""
        return hashlib.sha256(self.signing_bytes()).hexdigest()

    @property
    def payload(self) -> bytes:
        return bytes.fromhex(self.payload_hex)

    def with_sig(self, sig: str) -> "RelayEnvelope":
        return replace(self, sig=sig)
