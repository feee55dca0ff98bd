# src/accrual/bridge/adapter.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from accrual.bridge.payload import decode_rate, encode_rate
from accrual.ledger.auth import Authorizer, Capability, require
from accrual.ledger.constants import MAX_UINT256
from accrual.ledger.ledger import AccrualLedger
from accrual.ledger.types import as_uint
from accrual.runtime.errors import (
    DomainAlreadyRegistered,
    InvalidAmount,
    InvalidRateLimitConfig,
    UnknownRemoteDomain,
)
from accrual.runtime.log import log_event
from accrual.runtime.metrics import inc_counter

Json = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """
    Token-bucket shape stored per direction and per peer.

    Configuration only: the adapter records and reports it, enforcement
    belongs to the relay/router in front of it.
      - enabled:  0 < rate <= capacity
      - disabled: rate == capacity == 0
    """

    enabled: bool = False
    capacity: int = 0
    rate: int = 0

    def validate(self) -> None:
        cap = as_uint(self.capacity, "capacity")
        rate = as_uint(self.rate, "rate")
        if self.enabled:
            if rate == 0 or rate > cap:
                raise InvalidRateLimitConfig(details={"enabled": True, "capacity": cap, "rate": rate})
        elif cap != 0 or rate != 0:
            raise InvalidRateLimitConfig(details={"enabled": False, "capacity": cap, "rate": rate})

    def to_json(self) -> Json:
        return {"enabled": bool(self.enabled), "capacity": int(self.capacity), "rate": int(self.rate)}

    @classmethod
    def from_json(cls, obj: Any) -> "RateLimitConfig":
        if not isinstance(obj, dict):
            return cls()
        return cls(
            enabled=bool(obj.get("enabled", False)),
            capacity=int(obj.get("capacity", 0) or 0),
            rate=int(obj.get("rate", 0) or 0),
        )


@dataclass(frozen=True, slots=True)
class RemoteDomain:
    domain_id: str
    remote_adapter: str
    remote_token: str
    outbound: RateLimitConfig = field(default_factory=RateLimitConfig)
    inbound: RateLimitConfig = field(default_factory=RateLimitConfig)

    def to_json(self) -> Json:
        return {
            "domain_id": self.domain_id,
            "remote_adapter": self.remote_adapter,
            "remote_token": self.remote_token,
            "outbound": self.outbound.to_json(),
            "inbound": self.inbound.to_json(),
        }


class CrossDomainAdapter:
    """
    Burn-on-source / mint-on-destination adapter for one ledger on one domain.

    `address` is both the adapter's ledger identity (it must hold MINT_BURN)
    and its custody holder: outbound funds are moved into it before export,
    and export burns them from there.

    Only the exporter's rate crosses the boundary. The amount was burned
    including interest accrued up to the burn instant, and accrual is
    suspended until the destination mints it under that same rate.
    """

    def __init__(
        self,
        *,
        ledger: AccrualLedger,
        authorizer: Authorizer,
        address: str,
        domain_id: Optional[str] = None,
    ) -> None:
        a = str(address).strip()
        if not a:
            raise ValueError("adapter address must be a non-empty string")
        self.ledger = ledger
        self.address = a
        self.domain_id = str(domain_id or ledger.domain_id)
        self._auth = authorizer
        self._remotes: Dict[str, RemoteDomain] = {}
        self._lock = threading.Lock()
        self._log = logging.getLogger("accrual.bridge")

    # ----------------------------
    # Domain registration
    # ----------------------------

    def register_remote_domain(
        self,
        caller: str,
        domain_id: str,
        remote_adapter: str,
        remote_token: str,
        outbound: Optional[RateLimitConfig] = None,
        inbound: Optional[RateLimitConfig] = None,
    ) -> RemoteDomain:
        require(self._auth, caller, Capability.ADMIN)

        did = str(domain_id).strip()
        if not did:
            raise ValueError("domain_id must be a non-empty string")
        if did == self.domain_id:
            raise ValueError("a domain cannot be its own peer")
        ra = str(remote_adapter).strip()
        rt = str(remote_token).strip()
        if not ra or not rt:
            raise ValueError("remote_adapter and remote_token must be non-empty strings")

        out_cfg = outbound or RateLimitConfig()
        in_cfg = inbound or RateLimitConfig()
        out_cfg.validate()
        in_cfg.validate()

        rd = RemoteDomain(domain_id=did, remote_adapter=ra, remote_token=rt, outbound=out_cfg, inbound=in_cfg)
        with self._lock:
            if did in self._remotes:
                raise DomainAlreadyRegistered(details={"domain_id": did})
            self._remotes[did] = rd

        log_event(self._log, "bridge_domain_registered", domain=self.domain_id, remote=did, remote_token=rt)
        return rd

    def remove_remote_domain(self, caller: str, domain_id: str) -> None:
        require(self._auth, caller, Capability.ADMIN)
        did = str(domain_id).strip()
        with self._lock:
            if self._remotes.pop(did, None) is None:
                raise UnknownRemoteDomain(details={"domain_id": did})
        log_event(self._log, "bridge_domain_removed", domain=self.domain_id, remote=did)

    def set_rate_limit_config(
        self,
        caller: str,
        domain_id: str,
        *,
        outbound: Optional[RateLimitConfig] = None,
        inbound: Optional[RateLimitConfig] = None,
    ) -> RemoteDomain:
        require(self._auth, caller, Capability.ADMIN)
        if outbound is not None:
            outbound.validate()
        if inbound is not None:
            inbound.validate()

        with self._lock:
            cur = self._remote(str(domain_id).strip())
            rd = RemoteDomain(
                domain_id=cur.domain_id,
                remote_adapter=cur.remote_adapter,
                remote_token=cur.remote_token,
                outbound=outbound if outbound is not None else cur.outbound,
                inbound=inbound if inbound is not None else cur.inbound,
            )
            self._remotes[rd.domain_id] = rd
            return rd

    def _remote(self, domain_id: str) -> RemoteDomain:
        rd = self._remotes.get(domain_id)
        if rd is None:
            raise UnknownRemoteDomain(details={"domain_id": domain_id})
        return rd

    def is_supported_domain(self, domain_id: str) -> bool:
        with self._lock:
            return str(domain_id) in self._remotes

    def remote_domain(self, domain_id: str) -> RemoteDomain:
        with self._lock:
            return self._remote(str(domain_id))

    def remote_token_of(self, domain_id: str) -> str:
        return self.remote_domain(domain_id).remote_token

    def remote_adapter_of(self, domain_id: str) -> str:
        return self.remote_domain(domain_id).remote_adapter

    def supported_domains(self) -> List[str]:
        with self._lock:
            return sorted(self._remotes.keys())

    # ----------------------------
    # Transfers
    # ----------------------------

    def export_transfer(self, sender: str, amount: int, remote_domain: str) -> Tuple[bytes, str]:
        """
        Burn `amount` from adapter custody on behalf of `sender` and return
        (payload, remote_token). The payload carries sender's rate read
        before the burn.
        """
        rd = self.remote_domain(remote_domain)
        amount = as_uint(amount, "amount")
        if amount == MAX_UINT256:
            # The envelope must carry the exact amount burned.
            raise InvalidAmount(reason="explicit_amount_required", details={"field": "amount"})
        if amount == 0:
            raise InvalidAmount(reason="amount_must_be_positive", details={"amount": 0})

        rate = self.ledger.rate_of(sender)
        payload = encode_rate(rate)
        self.ledger.burn(self.address, self.address, amount)

        inc_counter("bridge_export_total")
        log_event(
            self._log,
            "bridge_export",
            domain=self.domain_id,
            remote=rd.domain_id,
            sender=str(sender),
            amount=amount,
            rate=rate,
        )
        return payload, rd.remote_token

    def import_transfer(self, receiver: str, amount: int, payload: bytes, source_domain: str) -> int:
        """
        Mint `amount` to `receiver` under the rate carried in `payload`.

        Not idempotent: each call mints. Callers key deliveries on the relay
        message id (see BridgeEndpoint.deliver).
        """
        rd = self.remote_domain(source_domain)
        amount = as_uint(amount, "amount")
        if amount == 0:
            # Minting nothing would still overwrite the receiver's rate.
            raise InvalidAmount(reason="amount_must_be_positive", details={"amount": 0})
        rate = decode_rate(payload)

        self.ledger.mint(self.address, receiver, amount, rate)

        inc_counter("bridge_import_total")
        log_event(
            self._log,
            "bridge_import",
            domain=self.domain_id,
            remote=rd.domain_id,
            receiver=str(receiver),
            amount=amount,
            rate=rate,
        )
        return amount


__all__ = ["CrossDomainAdapter", "RateLimitConfig", "RemoteDomain"]
