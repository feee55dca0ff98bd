from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Tuple

import pytest

# Ensure local "src/" takes precedence over any globally-installed "accrual" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from accrual.bridge.adapter import RateLimitConfig  # noqa: E402
from accrual.bridge.sig import generate_adapter_key, public_key_hex  # noqa: E402
from accrual.ledger.auth import RoleRegistry  # noqa: E402
from accrual.ledger.ledger import AccrualLedger  # noqa: E402
from accrual.runtime.boot import Domain, build_domain  # noqa: E402
from accrual.runtime.clock import ManualClock  # noqa: E402
from accrual.runtime.domain_config import DomainConfig, RemoteDomainConfig  # noqa: E402

OWNER = "owner"
MINTER = "minter"
RATE_5E10 = 5 * 10**10
RATE_4E10 = 4 * 10**10


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1_700_000_000)


@pytest.fixture
def roles() -> RoleRegistry:
    r = RoleRegistry(owner=OWNER)
    r.grant_mint_and_burn(OWNER, MINTER)
    return r


@pytest.fixture
def ledger(roles: RoleRegistry, clock: ManualClock) -> AccrualLedger:
    return AccrualLedger(authorizer=roles, clock=clock, default_rate=RATE_5E10, domain_id="x")


def _domain_config(
    domain_id: str,
    key: str,
    *,
    peer_id: str,
    peer_key: str,
    default_rate: int,
    max_envelope_bytes: int = 4_096,
) -> DomainConfig:
    return DomainConfig(
        domain_id=domain_id,
        mode="dev",
        owner=OWNER,
        adapter_address=f"{domain_id}-adapter",
        vault_address=f"{domain_id}-vault",
        token_id=f"{domain_id}:ACR",
        adapter_key=key,
        default_rate=default_rate,
        max_envelope_bytes=max_envelope_bytes,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
        remote_domains=(
            RemoteDomainConfig(
                domain_id=peer_id,
                remote_adapter=public_key_hex(peer_key),
                remote_token=f"{peer_id}:ACR",
                outbound=RateLimitConfig(enabled=True, capacity=10**24, rate=10**20),
                inbound=RateLimitConfig(),
            ),
        ),
    )


@pytest.fixture
def make_domain_pair() -> Callable[..., Tuple[Domain, Domain, ManualClock, ManualClock]]:
    """Two peered domains with independent clocks: X (rate 5e10) and Y (rate 4e10)."""

    def _make(*, max_envelope_bytes: int = 4_096) -> Tuple[Domain, Domain, ManualClock, ManualClock]:
        kx, ky = generate_adapter_key(), generate_adapter_key()
        cx, cy = ManualClock(start=1_700_000_000), ManualClock(start=1_700_000_500)
        x = build_domain(
            _domain_config("x", kx, peer_id="y", peer_key=ky, default_rate=RATE_5E10, max_envelope_bytes=max_envelope_bytes),
            clock=cx,
        )
        y = build_domain(
            _domain_config("y", ky, peer_id="x", peer_key=kx, default_rate=RATE_4E10, max_envelope_bytes=max_envelope_bytes),
            clock=cy,
        )
        return x, y, cx, cy

    return _make
