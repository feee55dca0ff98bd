# src/accrual/ledger/auth.py
from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Dict, Iterable, List, Protocol, Set

from accrual.runtime.errors import Unauthorized

Json = Dict[str, Any]


class Capability(str, Enum):
    MINT_BURN = "MINT_BURN"
    ADMIN = "ADMIN"


class Authorizer(Protocol):
    """Capability check consulted by the ledger before every gated mutation."""

    def can(self, caller: str, capability: Capability) -> bool: ...


def require(authorizer: Authorizer, caller: str, capability: Capability) -> None:
    if not authorizer.can(str(caller), capability):
        raise Unauthorized(details={"caller": str(caller), "capability": capability.value})


def _uniq_str_list(xs: Iterable[Any]) -> List[str]:
    out: List[str] = []
    seen: Set[str] = set()
    for it in xs:
        s = str(it).strip() if it is not None else ""
        if s and s not in seen:
            seen.add(s)
            out.append(s)
    return out


class RoleRegistry:
    """
    Owner-administered capability table.

    - The owner always holds ADMIN.
    - Only an ADMIN may grant or revoke capabilities.
    - MINT_BURN is typically granted to the exchange wrapper and the
      cross-domain adapter, never to end holders.
    """

    def __init__(self, owner: str) -> None:
        o = str(owner).strip()
        if not o:
            raise ValueError("owner must be a non-empty string")
        self._owner = o
        self._grants: Dict[Capability, Set[str]] = {c: set() for c in Capability}
        self._grants[Capability.ADMIN].add(o)
        self._lock = threading.Lock()

    @property
    def owner(self) -> str:
        return self._owner

    def can(self, caller: str, capability: Capability) -> bool:
        with self._lock:
            return str(caller) in self._grants[Capability(capability)]

    def grant(self, caller: str, holder: str, capability: Capability) -> None:
        require(self, caller, Capability.ADMIN)
        h = str(holder).strip()
        if not h:
            raise ValueError("holder must be a non-empty string")
        with self._lock:
            self._grants[Capability(capability)].add(h)

    def grant_mint_and_burn(self, caller: str, holder: str) -> None:
        self.grant(caller, holder, Capability.MINT_BURN)

    def revoke(self, caller: str, holder: str, capability: Capability) -> None:
        require(self, caller, Capability.ADMIN)
        h = str(holder).strip()
        cap = Capability(capability)
        if cap is Capability.ADMIN and h == self._owner:
            raise ValueError("owner cannot lose ADMIN")
        with self._lock:
            self._grants[cap].discard(h)

    def holders(self, capability: Capability) -> List[str]:
        with self._lock:
            return sorted(self._grants[Capability(capability)])

    def to_json(self) -> Json:
        with self._lock:
            return {
                "owner": self._owner,
                "grants": {c.value: sorted(hs) for c, hs in self._grants.items()},
            }

    @classmethod
    def from_json(cls, obj: Json) -> "RoleRegistry":
        reg = cls(str(obj.get("owner") or ""))
        grants = obj.get("grants") if isinstance(obj.get("grants"), dict) else {}
        for cap_name, holders in grants.items():
            cap = Capability(str(cap_name))
            for h in _uniq_str_list(holders if isinstance(holders, list) else []):
                reg._grants[cap].add(h)
        return reg


__all__ = ["Authorizer", "Capability", "RoleRegistry", "require"]
