from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from accrual.bridge.codec import WireDecodeError, decode_envelope, encode_envelope
from accrual.bridge.endpoint import DEFAULT_MAX_ENVELOPE_BYTES, BridgeEndpoint, DeliveryResult
from accrual.runtime.errors import AccrualError
from accrual.runtime.log import log_event

Pair = Tuple[str, str]


@dataclass(slots=True)
class Packet:
    pair: Pair
    msg_id: str
    data: bytes


@dataclass(slots=True)
class FailedDelivery:
    packet: Packet
    code: str
    reason: str


class InMemoryRelay:
    """
    Minimal in-process relay used for unit tests and local two-domain runs.

    - Pulls envelopes from each attached endpoint's outbox (collect)
    - Queues them per ordered (source, dest) pair as wire bytes
    - Delivers FIFO per pair (deliver), at least once

    Test hooks:
      - duplicate=True delivers every packet twice
      - reorder_seed shuffles packets across pairs and within a pair
    Packets larger than max_payload_bytes are refused as payload_too_large.
    Failed deliveries are kept in `failed` for out-of-band re-drive.
    """

    def __init__(
        self,
        *,
        duplicate: bool = False,
        reorder_seed: Optional[int] = None,
        max_payload_bytes: int = DEFAULT_MAX_ENVELOPE_BYTES,
    ) -> None:
        self.max_payload_bytes = int(max_payload_bytes)
        self._endpoints: Dict[str, BridgeEndpoint] = {}
        self._queues: Dict[Pair, List[Packet]] = {}
        self.duplicate = bool(duplicate)
        self._rng = random.Random(reorder_seed) if reorder_seed is not None else None
        self.delivered: List[DeliveryResult] = []
        self.failed: List[FailedDelivery] = []
        self._log = logging.getLogger("accrual.relay")

    def attach(self, endpoint: BridgeEndpoint) -> None:
        self._endpoints[endpoint.domain_id] = endpoint

    def endpoint(self, domain_id: str) -> BridgeEndpoint:
        return self._endpoints[domain_id]

    def queued(self) -> int:
        return sum(len(q) for q in self._queues.values())

    def collect(self) -> int:
        n = 0
        for ep in self._endpoints.values():
            for env in ep.drain():
                pair = (env.source_domain, env.dest_domain)
                self._queues.setdefault(pair, []).append(Packet(pair=pair, msg_id=env.msg_id, data=encode_envelope(env)))
                n += 1
        return n

    def _schedule(self) -> List[Packet]:
        order: List[Packet] = []
        for pair in sorted(self._queues):
            order.extend(self._queues[pair])
        self._queues.clear()
        if self._rng is not None:
            self._rng.shuffle(order)
        if self.duplicate:
            order = [p for p in order for _ in (0, 1)]
        return order

    def deliver(self) -> List[DeliveryResult]:
        results: List[DeliveryResult] = []
        for pkt in self._schedule():
            res = self._deliver_one(pkt)
            if res is not None:
                results.append(res)
        self.delivered.extend(results)
        return results

    def _deliver_one(self, pkt: Packet) -> Optional[DeliveryResult]:
        if len(pkt.data) > self.max_payload_bytes:
            self.failed.append(FailedDelivery(packet=pkt, code="payload_too_large", reason="exceeds_relay_limit"))
            log_event(self._log, "relay_delivery_failed", msg_id=pkt.msg_id, code="payload_too_large", size=len(pkt.data))
            return None
        ep = self._endpoints.get(pkt.pair[1])
        if ep is None:
            self.failed.append(FailedDelivery(packet=pkt, code="no_route", reason="destination_not_attached"))
            return None
        try:
            return ep.deliver(decode_envelope(pkt.data))
        except WireDecodeError as e:
            self.failed.append(FailedDelivery(packet=pkt, code="malformed_payload", reason=e.code))
        except AccrualError as e:
            self.failed.append(FailedDelivery(packet=pkt, code=e.code, reason=e.reason))
        log_event(self._log, "relay_delivery_failed", msg_id=pkt.msg_id, code=self.failed[-1].code)
        return None

    def run(self) -> List[DeliveryResult]:
        self.collect()
        return self.deliver()

    def redrive(self) -> List[DeliveryResult]:
        """Re-attempt every failed delivery once (manual remediation path)."""
        pending, self.failed = self.failed, []
        results = [r for r in (self._deliver_one(f.packet) for f in pending) if r is not None]
        self.delivered.extend(results)
        return results
