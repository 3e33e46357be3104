"""Shared reconciler building blocks: filtering, grouping, matching, locks."""

import asyncio

from storefront.services.chain_sync_service import (
    Candidate,
    fetch_matches,
    group_by_contract,
    scope_lock,
    well_formed,
)
from storefront.tests.fakes import FakeChainReader

GOOD_HASH = "0x" + "ab" * 32


def _candidate(n: int, tx_hash: str = GOOD_HASH, contract: str = "0xcontract") -> Candidate:
    return Candidate(
        transaction_id=f"tx-{n}",
        hash=tx_hash,
        owner_id=f"owner-{n}",
        contract_address=contract,
    )


# ---------------------------------------------------------------------------
# well_formed / group_by_contract
# ---------------------------------------------------------------------------

def test_well_formed_drops_hashes_of_the_wrong_length():
    keep = _candidate(1)
    short = _candidate(2, tx_hash="0x1234")
    long = _candidate(3, tx_hash=GOOD_HASH + "00")
    assert well_formed([keep, short, long]) == [keep]


def test_group_by_contract_keeps_first_seen_order():
    a1 = _candidate(1, contract="0xA")
    b1 = _candidate(2, contract="0xB")
    a2 = _candidate(3, contract="0xA")
    groups = group_by_contract([a1, b1, a2])
    assert list(groups) == ["0xA", "0xB"]
    assert groups["0xA"] == [a1, a2]
    assert groups["0xB"] == [b1]


def test_group_by_contract_of_nothing_is_empty():
    assert group_by_contract([]) == {}


# ---------------------------------------------------------------------------
# fetch_matches
# ---------------------------------------------------------------------------

async def test_fetch_matches_pairs_results_case_insensitively():
    reader = FakeChainReader()
    candidate = _candidate(1)
    reader.add(GOOD_HASH.upper().replace("0X", "0x"))

    matches = await fetch_matches(reader, "0xcontract", [candidate])

    assert len(matches) == 1
    assert matches[0].candidate is candidate
    assert reader.calls == [("0xcontract", [GOOD_HASH])]


async def test_fetch_matches_ignores_hashes_it_did_not_ask_for():
    reader = FakeChainReader()
    reader.add("0x" + "cd" * 32, unsolicited=True)

    matches = await fetch_matches(reader, "0xcontract", [_candidate(1)])

    assert matches == []


async def test_fetch_matches_skips_transactions_the_chain_does_not_know():
    reader = FakeChainReader()
    matches = await fetch_matches(reader, "0xcontract", [_candidate(1)])
    assert matches == []


# ---------------------------------------------------------------------------
# scope_lock
# ---------------------------------------------------------------------------

def test_scope_lock_is_shared_per_kind_and_scope():
    assert scope_lock("product-orders", 97) is scope_lock("product-orders", "97")
    assert scope_lock("product-orders", 97) is not scope_lock("seller-payouts", 97)
    assert scope_lock("product-orders", 97) is not scope_lock("product-orders", 56)


async def test_scope_lock_serialises_overlapping_runs():
    events: list[str] = []

    async def run(name: str):
        async with scope_lock("seller-payouts", 97):
            events.append(f"{name}-start")
            await asyncio.sleep(0.01)
            events.append(f"{name}-end")

    await asyncio.gather(run("a"), run("b"))

    assert events in (
        ["a-start", "a-end", "b-start", "b-end"],
        ["b-start", "b-end", "a-start", "a-end"],
    )
