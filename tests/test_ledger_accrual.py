from __future__ import annotations

import pytest

from accrual.ledger.constants import MAX_UINT256, PRECISION
from accrual.ledger.types import accrued_balance, growth
from accrual.runtime.errors import InsufficientBalance, InvalidAmount, Unauthorized

from conftest import MINTER, RATE_5E10


def test_growth_is_linear_between_materializations() -> None:
    assert growth(RATE_5E10, 0) == PRECISION
    assert growth(RATE_5E10, 3600) == PRECISION + RATE_5E10 * 3600
    assert growth(RATE_5E10, 7200) - growth(RATE_5E10, 3600) == RATE_5E10 * 3600
    # Negative elapsed (clock skew) never shrinks a balance.
    assert growth(RATE_5E10, -10) == PRECISION


def test_accrued_balance_floors_and_empty_principal_is_zero() -> None:
    assert accrued_balance(0, RATE_5E10, 10**9) == 0
    # 100000 * 1.00018 = 100018; sub-unit remainder is dropped.
    assert accrued_balance(100_000, RATE_5E10, 3600) == 100_018
    assert accrued_balance(1, RATE_5E10, 3600) == 1


def test_deposit_then_one_hour_matches_formula(ledger, clock) -> None:
    ledger.mint(MINTER, "alice", 100_000_000, RATE_5E10)
    clock.advance(3600)
    assert ledger.balance_of("alice") == 100_000_000 * (PRECISION + RATE_5E10 * 3600) // PRECISION
    assert ledger.balance_of("alice") == 100_018_000
    # principal is what was last settled
    assert ledger.principal_of("alice") == 100_000_000


def test_balance_strictly_increases_with_time(ledger, clock) -> None:
    ledger.mint(MINTER, "alice", 10**18, RATE_5E10)
    prev = ledger.balance_of("alice")
    for _ in range(5):
        clock.advance(1)
        cur = ledger.balance_of("alice")
        assert cur > prev
        prev = cur


def test_empty_account_never_accrues(ledger, clock) -> None:
    ledger.mint(MINTER, "alice", 0, RATE_5E10)
    clock.advance(10**7)
    assert ledger.balance_of("alice") == 0
    assert ledger.balance_of("nobody") == 0
    assert ledger.rate_of("nobody") == 0


def test_materializing_twice_at_same_instant_is_idempotent(ledger, clock) -> None:
    ledger.mint(MINTER, "alice", 10**18, RATE_5E10)
    clock.advance(1000)

    ledger.transfer("alice", "alice", 0)
    p1, t1 = ledger.principal_of("alice"), ledger.last_update_of("alice")
    assert p1 == ledger.balance_of("alice")

    ledger.transfer("alice", "alice", 0)
    assert ledger.principal_of("alice") == p1
    assert ledger.last_update_of("alice") == t1


def test_compounding_happens_only_across_materializations(ledger, clock) -> None:
    ledger.mint(MINTER, "a", 10**18, RATE_5E10)
    ledger.mint(MINTER, "b", 10**18, RATE_5E10)

    clock.advance(1800)
    ledger.transfer("b", "b", 0)
    clock.advance(1800)

    linear = ledger.balance_of("a")
    compounded = ledger.balance_of("b")
    assert linear == 10**18 * growth(RATE_5E10, 3600) // PRECISION
    assert compounded > linear


def test_mint_overwrites_rate_even_for_funded_holder(ledger, clock) -> None:
    ledger.mint(MINTER, "alice", 1_000, RATE_5E10)
    clock.advance(60)
    ledger.mint(MINTER, "alice", 1_000, 1)
    assert ledger.rate_of("alice") == 1
    assert ledger.principal_of("alice") == 2_000


def test_burn_max_redeems_everything_including_fresh_interest(ledger, clock) -> None:
    ledger.mint(MINTER, "alice", 100_000_000, RATE_5E10)
    clock.advance(3600)

    burned = ledger.burn(MINTER, "alice", MAX_UINT256)
    assert burned == 100_018_000
    assert ledger.balance_of("alice") == 0
    assert ledger.principal_of("alice") == 0


def test_burn_more_than_balance_fails_without_side_effects(ledger, clock) -> None:
    ledger.mint(MINTER, "alice", 1_000, RATE_5E10)
    last = ledger.last_update_of("alice")
    clock.advance(10)

    with pytest.raises(InsufficientBalance):
        ledger.burn(MINTER, "alice", 10_000)

    assert ledger.principal_of("alice") == 1_000
    assert ledger.last_update_of("alice") == last


def test_mint_and_burn_require_capability(ledger) -> None:
    with pytest.raises(Unauthorized):
        ledger.mint("mallory", "mallory", 10, RATE_5E10)
    ledger.mint(MINTER, "alice", 10, RATE_5E10)
    with pytest.raises(Unauthorized):
        ledger.burn("alice", "alice", 10)
    assert ledger.principal_of("mallory") == 0
    assert ledger.principal_of("alice") == 10


@pytest.mark.parametrize("bad", [-1, True, 1.5, "10", None])
def test_amounts_must_be_unsigned_ints(ledger, bad) -> None:
    with pytest.raises(InvalidAmount):
        ledger.mint(MINTER, "alice", bad, RATE_5E10)
    assert ledger.holders() == []


def test_events_record_issuance(ledger) -> None:
    ledger.mint(MINTER, "alice", 7, RATE_5E10)
    ev = ledger.events()
    assert ev[-1]["event"] == "mint"
    assert ev[-1]["to"] == "alice"
    assert ev[-1]["amount"] == 7
