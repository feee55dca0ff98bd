from __future__ import annotations

import pytest

from accrual.ledger.auth import Capability, RoleRegistry
from accrual.runtime.errors import RateMustDecrease, Unauthorized

from conftest import MINTER, OWNER, RATE_4E10, RATE_5E10


def test_default_rate_can_only_go_down(ledger) -> None:
    assert ledger.current_default_rate() == RATE_5E10

    with pytest.raises(RateMustDecrease):
        ledger.set_default_rate(OWNER, RATE_5E10)
    with pytest.raises(RateMustDecrease):
        ledger.set_default_rate(OWNER, RATE_5E10 + 1)
    assert ledger.current_default_rate() == RATE_5E10

    ledger.set_default_rate(OWNER, RATE_4E10)
    assert ledger.current_default_rate() == RATE_4E10


def test_lowering_default_rate_does_not_reprice_existing_holders(ledger, clock) -> None:
    """Existing positions keep the rate they were minted at; only new deposits see the cut."""
    ledger.mint(MINTER, "alice", 100_000_000, ledger.current_default_rate())
    ledger.set_default_rate(OWNER, RATE_4E10)
    ledger.mint(MINTER, "bob", 100_000_000, ledger.current_default_rate())

    clock.advance(3600)

    assert ledger.rate_of("alice") == RATE_5E10
    assert ledger.rate_of("bob") == RATE_4E10
    assert ledger.balance_of("alice") == 100_018_000
    assert ledger.balance_of("bob") == 100_014_400


def test_only_admin_sets_default_rate(ledger) -> None:
    with pytest.raises(Unauthorized) as ei:
        ledger.set_default_rate(MINTER, 1)
    assert ei.value.details == {"caller": MINTER, "capability": "ADMIN"}
    assert ledger.current_default_rate() == RATE_5E10


def test_role_registry_grants_and_revokes() -> None:
    r = RoleRegistry(owner=OWNER)
    assert r.can(OWNER, Capability.ADMIN)
    assert not r.can("vault", Capability.MINT_BURN)

    r.grant_mint_and_burn(OWNER, "vault")
    assert r.holders(Capability.MINT_BURN) == ["vault"]

    with pytest.raises(Unauthorized):
        r.grant("vault", "mallory", Capability.MINT_BURN)

    r.revoke(OWNER, "vault", Capability.MINT_BURN)
    assert not r.can("vault", Capability.MINT_BURN)

    with pytest.raises(ValueError):
        r.revoke(OWNER, OWNER, Capability.ADMIN)


def test_role_registry_json_roundtrip() -> None:
    r = RoleRegistry(owner=OWNER)
    r.grant_mint_and_burn(OWNER, "adapter")

    r2 = RoleRegistry.from_json(r.to_json())
    assert r2.owner == OWNER
    assert r2.can("adapter", Capability.MINT_BURN)
    assert r2.can(OWNER, Capability.ADMIN)
