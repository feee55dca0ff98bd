from __future__ import annotations

from accrual.bridge.adapter import CrossDomainAdapter, RateLimitConfig, RemoteDomain
from accrual.bridge.endpoint import BridgeEndpoint, DeliveryResult
from accrual.bridge.messages import RelayEnvelope
from accrual.bridge.payload import decode_rate, encode_rate
from accrual.bridge.relay import InMemoryRelay

__all__ = [
    "BridgeEndpoint",
    "CrossDomainAdapter",
    "DeliveryResult",
    "InMemoryRelay",
    "RateLimitConfig",
    "RelayEnvelope",
    "RemoteDomain",
    "decode_rate",
    "encode_rate",
]
