from __future__ import annotations

from decimal import Decimal

import pytest

from holder_lottery.entries import build_entries, calculate_tickets, prefilter_holders, rank_entries
from holder_lottery.models import EligibilityResult, Holder
from holder_lottery.project_constants import EXCLUDED_ADDRESSES

RAYDIUM_AMM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"


@pytest.mark.parametrize(
    "balance,expected",
    [
        (0, 0),
        (9_999, 0),
        ("9999.999999", 0),
        (10_000, 1),
        (15_000.5, 1),
        (Decimal("25000"), 2),
        (20_000_000, 2_000),
        (50_000_000, 2_000),
        (-10_000, 0),
    ],
)
def test_calculate_tickets(balance, expected):
    assert calculate_tickets(balance) == expected


def test_build_entries_drops_holders_below_one_ticket():
    holders = [
        Holder("A", Decimal(15_000)),
        Holder("B", Decimal(25_000)),
        Holder("C", Decimal(5_000)),
    ]
    eligibility = {w: EligibilityResult(True) for w in ("A", "B", "C")}

    entries = build_entries(holders, eligibility)

    assert [(e.wallet, e.tickets) for e in entries] == [("A", 1), ("B", 2)]
    assert sum(e.tickets for e in entries) == 3
    assert all(e.tickets >= 1 for e in entries)


def test_build_entries_missing_eligibility_is_ineligible_without_reason():
    entries = build_entries([Holder("A", Decimal(50_000))], {})

    assert entries[0].eligible is False
    assert entries[0].reason is None


def test_build_entries_keeps_reason_for_disqualified():
    eligibility = {"A": EligibilityResult(False, "Sold/transferred 5 tokens (tx: abc...)")}

    entries = build_entries([Holder("A", Decimal(50_000))], eligibility)

    assert entries[0].eligible is False
    assert entries[0].reason.startswith("Sold/transferred")


def test_excluded_addresses_never_become_entries():
    assert RAYDIUM_AMM in EXCLUDED_ADDRESSES
    holders = [Holder(RAYDIUM_AMM, Decimal(20_000_000)), Holder("A", Decimal(10_000))]
    eligibility = {RAYDIUM_AMM: EligibilityResult(True), "A": EligibilityResult(True)}

    entries = build_entries(holders, eligibility)

    assert [e.wallet for e in entries] == ["A"]


def test_prefilter_honours_extra_exclusions():
    holders = [
        Holder("A", Decimal(10_000)),
        Holder("B", Decimal(9_000)),
        Holder("Team", Decimal(1_000_000)),
    ]

    kept = prefilter_holders(holders, EXCLUDED_ADDRESSES | {"Team"})

    assert [h.owner for h in kept] == ["A"]


def test_rank_entries_orders_by_tickets_then_balance(make_entry):
    entries = [make_entry("C", 1), make_entry("A", 5), make_entry("B", 5)]

    assert [e.wallet for e in rank_entries(entries)] == ["A", "B", "C"]
