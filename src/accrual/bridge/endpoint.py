# src/accrual/bridge/endpoint.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal

from accrual.bridge.adapter import CrossDomainAdapter
from accrual.bridge.codec import encode_envelope, envelope_from_json, envelope_to_json
from accrual.bridge.messages import RelayEnvelope
from accrual.bridge.payload import encode_rate, payload_from_hex
from accrual.bridge.sig import public_key_hex, sign_envelope, verify_envelope
from accrual.ledger.constants import MAX_UINT256
from accrual.ledger.types import as_uint
from accrual.runtime.errors import (
    BadSignature,
    InsufficientBalance,
    InvalidAmount,
    PayloadTooLarge,
    WrongDestination,
)
from accrual.runtime.log import log_event
from accrual.runtime.metrics import inc_counter, set_gauge

Json = Dict[str, Any]

# Envelopes are tiny; anything near this is a bug or an attack.
DEFAULT_MAX_ENVELOPE_BYTES = 4_096


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    msg_id: str
    status: Literal["applied", "duplicate"]
    minted: int


class BridgeEndpoint:
    """
    One domain's side of the relay.

    Outbound (send):
      holder funds -> adapter custody -> export (burn) -> signed envelope in outbox

    Inbound (deliver):
      destination/peer/signature checks -> dedup on msg_id -> import (mint)

    The adapter itself mints on every import call; exactly-once effective
    application lives here, keyed on the envelope msg_id. Re-delivering an
    already applied envelope is acknowledged as a duplicate and mints nothing.

    Lock order is always ledger lock, then endpoint lock.

    Per-peer nonces and the processed set must survive restarts (see
    snapshot/restore): a reused nonce reproduces an old msg_id, and the peer
    would drop a genuinely new transfer as a duplicate.
    """

    def __init__(
        self,
        *,
        adapter: CrossDomainAdapter,
        signing_key: str,
        token_id: str,
        max_envelope_bytes: int = DEFAULT_MAX_ENVELOPE_BYTES,
    ) -> None:
        self.adapter = adapter
        self.domain_id = adapter.domain_id
        self.token_id = str(token_id)
        self.public_key = public_key_hex(signing_key)
        self.max_envelope_bytes = int(max_envelope_bytes)
        self._key = signing_key

        self._outbox: List[RelayEnvelope] = []
        self._nonces: Dict[str, int] = {}
        self._processed: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._log = logging.getLogger("accrual.bridge")

    def _publish_depth(self) -> None:
        set_gauge(f"bridge_outbox_depth_{self.domain_id}", len(self._outbox))

    # ----------------------------
    # Outbound
    # ----------------------------

    def send(self, sender: str, receiver: str, amount: int, remote_domain: str) -> RelayEnvelope:
        """Bridge `amount` (MAX_UINT256 = everything) of sender's balance to receiver on remote_domain."""
        rd = self.adapter.remote_domain(remote_domain)
        amount = as_uint(amount, "amount")
        receiver = str(receiver).strip()
        if not receiver:
            raise ValueError("receiver must be a non-empty string")

        ledger = self.adapter.ledger
        with ledger.atomic(), self._lock:
            available = ledger.balance_of(sender)
            if amount == MAX_UINT256:
                amount = available
            if amount == 0:
                # A zero mint would still re-price the receiver on the far side.
                raise InvalidAmount(reason="amount_must_be_positive", details={"amount": 0})
            if amount > available:
                raise InsufficientBalance(details={"holder": str(sender), "balance": available, "amount": amount})

            nonce = self._nonces.get(rd.domain_id, 0) + 1
            draft = RelayEnvelope(
                source_domain=self.domain_id,
                dest_domain=rd.domain_id,
                source_adapter=self.public_key,
                nonce=nonce,
                sender=str(sender),
                receiver=receiver,
                amount=amount,
                payload_hex=encode_rate(ledger.rate_of(sender)).hex(),
                remote_token=rd.remote_token,
            )
            env = sign_envelope(draft, privkey=self._key)
            size = len(encode_envelope(env))
            if size > self.max_envelope_bytes:
                raise PayloadTooLarge(details={"bytes": size, "max": self.max_envelope_bytes})

            ledger.transfer(sender, self.adapter.address, amount)
            # Same lock as the draft, so the exported rate matches payload_hex.
            self.adapter.export_transfer(sender, amount, rd.domain_id)

            self._nonces[rd.domain_id] = nonce
            self._outbox.append(env)
            self._publish_depth()

        inc_counter("bridge_send_total")
        log_event(self._log, "bridge_send", domain=self.domain_id, msg_id=env.msg_id, remote=rd.domain_id, amount=amount)
        return env

    def pending(self) -> List[RelayEnvelope]:
        with self._lock:
            return list(self._outbox)

    def ack(self, msg_ids: Iterable[str]) -> int:
        ids = set(msg_ids)
        with self._lock:
            before = len(self._outbox)
            self._outbox = [e for e in self._outbox if e.msg_id not in ids]
            self._publish_depth()
            return before - len(self._outbox)

    def drain(self) -> List[RelayEnvelope]:
        with self._lock:
            out = list(self._outbox)
            self._outbox.clear()
            self._publish_depth()
            return out

    # ----------------------------
    # Inbound
    # ----------------------------

    def deliver(self, env: RelayEnvelope) -> DeliveryResult:
        if env.dest_domain != self.domain_id:
            raise WrongDestination(details={"dest_domain": env.dest_domain, "domain": self.domain_id})
        if env.remote_token != self.token_id:
            raise WrongDestination(reason="token_mismatch", details={"remote_token": env.remote_token})

        size = len(encode_envelope(env))
        if size > self.max_envelope_bytes:
            raise PayloadTooLarge(details={"bytes": size, "max": self.max_envelope_bytes})

        rd = self.adapter.remote_domain(env.source_domain)
        if env.source_adapter != rd.remote_adapter:
            raise BadSignature(reason="unknown_source_adapter", details={"source_domain": env.source_domain})
        if not verify_envelope(env, pubkey=rd.remote_adapter):
            raise BadSignature(details={"source_domain": env.source_domain})

        payload = payload_from_hex(env.payload_hex)
        msg_id = env.msg_id

        with self.adapter.ledger.atomic(), self._lock:
            if msg_id in self._processed:
                inc_counter("bridge_duplicate_total")
                log_event(self._log, "bridge_duplicate", domain=self.domain_id, msg_id=msg_id)
                return DeliveryResult(msg_id=msg_id, status="duplicate", minted=0)

            minted = self.adapter.import_transfer(env.receiver, env.amount, payload, env.source_domain)
            self._processed[msg_id] = minted

        return DeliveryResult(msg_id=msg_id, status="applied", minted=minted)

    def is_processed(self, msg_id: str) -> bool:
        with self._lock:
            return msg_id in self._processed

    def processed_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._processed.keys())

    # ----------------------------
    # Persistence
    # ----------------------------

    def snapshot(self) -> Json:
        with self._lock:
            return {
                "nonces": dict(self._nonces),
                "processed": {k: str(v) for k, v in sorted(self._processed.items())},
                "outbox": [envelope_to_json(e) for e in self._outbox],
            }

    def restore(self, state: Json) -> None:
        """Replace nonces, processed ids and outbox with a snapshot()."""
        nonces = state.get("nonces") if isinstance(state.get("nonces"), dict) else {}
        processed = state.get("processed") if isinstance(state.get("processed"), dict) else {}
        outbox = state.get("outbox") if isinstance(state.get("outbox"), list) else []

        restored_outbox = [envelope_from_json(e) for e in outbox]
        with self._lock:
            self._nonces = {str(k): int(v) for k, v in nonces.items()}
            self._processed = {str(k): int(v) for k, v in processed.items()}
            self._outbox = restored_outbox
            self._publish_depth()


__all__ = ["BridgeEndpoint", "DEFAULT_MAX_ENVELOPE_BYTES", "DeliveryResult"]
