from __future__ import annotations

import threading

import httpx
import pytest

from holder_lottery.cache import EligibilityCache
from holder_lottery.eligibility import (
    NOT_CHECKED_REASON,
    EligibilityChecker,
    find_outgoing_transfer,
    is_excluded_address,
    load_excluded_wallets,
)
from holder_lottery.errors import HistoryCheckFailed
from holder_lottery.helius import HeliusClient
from holder_lottery.throttle import Deadline

MINT = "Mint1111111111111111111111111111111111111111"
OTHER_MINT = "Other111111111111111111111111111111111111111"


def make_checker(history, clock, sleeps, **kwargs):
    cache = EligibilityCache(ttl_s=300, clock=clock)
    return EligibilityChecker(history, cache=cache, sleep=sleeps.append, **kwargs)


def test_clean_history_is_eligible(history, clock, sleeps):
    checker = make_checker(history, clock, sleeps)

    result = checker.check_eligibility("alice", MINT)

    assert result.eligible is True
    assert result.reason is None
    assert result.cached_at == clock()


def test_outgoing_transfer_disqualifies(history, clock, sleeps, make_sell_tx):
    history.transactions["alice"] = [make_sell_tx("5xYzAbCdEfGh123", MINT, "alice", 1500)]
    checker = make_checker(history, clock, sleeps)

    result = checker.check_eligibility("alice", MINT)

    assert result.eligible is False
    assert result.reason == "Sold/transferred 1500 tokens (tx: 5xYzAbCd...)"


def test_incoming_and_other_mint_transfers_do_not_disqualify(make_sell_tx):
    txs = [
        make_sell_tx("sig1", MINT, "someone-else", 10),
        make_sell_tx("sig2", OTHER_MINT, "alice", 10),
        make_sell_tx("sig3", MINT, "alice", 0),
        {"signature": "sig4", "tokenTransfers": None},
    ]

    assert find_outgoing_transfer(txs, "alice", MINT) is None


def test_failed_history_is_fail_closed_and_not_cached(history_factory, clock, sleeps):
    history = history_factory(failures={"alice": 429})
    checker = make_checker(history, clock, sleeps)

    first = checker.check_eligibility("alice", MINT)
    second = checker.check_eligibility("alice", MINT)

    assert first.eligible is False
    assert first.reason == "API error: 429"
    assert second.reason == "API error: 429"
    assert len(history.calls) == 2
    assert checker.cache.stats()["size"] == 0


def test_transport_failure_reason(clock, sleeps):
    class Broken:
        def get_transfer_transactions(self, wallet, before=None):
            raise HistoryCheckFailed("connection reset")

    result = make_checker(Broken(), clock, sleeps).check_eligibility("alice", MINT)

    assert result.eligible is False
    assert result.reason == "Error checking transaction history"


def test_cache_hit_skips_network_until_ttl_or_clear(history, clock, sleeps):
    checker = make_checker(history, clock, sleeps)

    first = checker.check_eligibility("alice", MINT)
    again = checker.check_eligibility("alice", MINT)
    assert again is first
    assert len(history.calls) == 1

    clock.advance(300)
    checker.check_eligibility("alice", MINT)
    assert len(history.calls) == 2

    checker.cache.clear()
    checker.check_eligibility("alice", MINT)
    assert len(history.calls) == 3


def test_cache_is_keyed_by_mint(history, clock, sleeps):
    checker = make_checker(history, clock, sleeps)

    checker.check_eligibility("alice", MINT)
    checker.check_eligibility("alice", OTHER_MINT)

    assert len(history.calls) == 2


def test_history_paging_follows_before_signature(clock, sleeps, make_sell_tx):
    class Paged:
        def __init__(self):
            self.calls = []

        def get_transfer_transactions(self, wallet, before=None):
            self.calls.append(before)
            if before is None:
                return [{"signature": "newest", "tokenTransfers": []}]
            return [make_sell_tx("older-sell", MINT, wallet, 3)]

    paged = Paged()
    result = make_checker(paged, clock, sleeps, history_pages=2).check_eligibility("bob", MINT)

    assert paged.calls == [None, "newest"]
    assert result.eligible is False


def test_batch_check_groups_progress_and_delays(history, clock, sleeps, make_sell_tx):
    wallets = [f"w{i:02d}" for i in range(25)]
    history.transactions["w03"] = [make_sell_tx("sigsigsig", MINT, "w03", 1)]
    checker = make_checker(history, clock, sleeps, group_size=10, group_delay_s=1.0)
    progress = []

    results = checker.batch_check(wallets, MINT, on_progress=lambda c, t: progress.append((c, t)))

    assert list(results) == wallets
    assert progress == [(10, 25), (20, 25), (25, 25)]
    assert sleeps == [1.0, 1.0]
    assert results["w03"].eligible is False
    assert sum(r.eligible for r in results.values()) == 24


def test_batch_check_runs_a_group_concurrently(clock, sleeps):
    barrier = threading.Barrier(5, timeout=5)

    class Concurrent:
        def get_transfer_transactions(self, wallet, before=None):
            barrier.wait()
            return []

    checker = make_checker(Concurrent(), clock, sleeps, group_size=5)

    results = checker.batch_check([f"w{i}" for i in range(10)], MINT)

    assert all(r.eligible for r in results.values())


def test_batch_check_deduplicates_and_absorbs_failures(history_factory, clock, sleeps):
    history = history_factory(failures={"b": 500})
    checker = make_checker(history, clock, sleeps, group_size=2)

    results = checker.batch_check(["a", "b", "a", "c"], MINT)

    assert list(results) == ["a", "b", "c"]
    assert results["b"].eligible is False
    assert results["a"].eligible and results["c"].eligible


def test_batch_check_stops_at_deadline(history, clock, sleeps):
    checker = make_checker(history, clock, sleeps, group_size=2)
    deadline = Deadline(0, clock=clock)

    results = checker.batch_check(["a", "b", "c"], MINT, deadline=deadline)

    assert history.calls == []
    assert all(not r.eligible and r.reason == NOT_CHECKED_REASON for r in results.values())


def test_batch_check_empty_input(history, clock, sleeps):
    assert make_checker(history, clock, sleeps).batch_check([], MINT) == {}
    assert sleeps == []


def test_excluded_addresses():
    assert is_excluded_address("JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4")
    assert not is_excluded_address("alice")

    checker = EligibilityChecker(history=None, extra_excluded=["team-wallet"])
    assert checker.is_excluded("team-wallet")
    assert checker.is_excluded("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")


def test_load_excluded_wallets(tmp_path):
    path = tmp_path / "excluded.txt"
    path.write_text("# treasury\nTreasury111\n\n  Team222  \n")

    assert load_excluded_wallets(str(path)) == {"Treasury111", "Team222"}
    assert load_excluded_wallets(None) == set()


def test_helius_client_fetches_transfer_history():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[{"signature": "abc", "tokenTransfers": []}])

    with HeliusClient("key", transport=httpx.MockTransport(handler)) as client:
        txs = client.get_transfer_transactions("alice", before="sig0")

    assert txs[0]["signature"] == "abc"
    assert seen["path"] == "/v0/addresses/alice/transactions"
    assert seen["params"] == {"api-key": "key", "type": "TRANSFER", "before": "sig0"}


def test_helius_client_non_success_raises_with_status():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="down"))

    with HeliusClient("key", transport=transport) as client:
        with pytest.raises(HistoryCheckFailed) as exc:
            client.get_transfer_transactions("alice")

    assert exc.value.status_code == 503


def test_malformed_history_fails_closed_for_that_wallet_only(clock, sleeps):
    bodies = {
        "GoodW": [{"signature": "ok", "tokenTransfers": []}],
        "BadW": [None],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        wallet = request.url.path.split("/")[3]
        return httpx.Response(200, json=bodies[wallet])

    with HeliusClient("key", transport=httpx.MockTransport(handler)) as client:
        checker = make_checker(client, clock, sleeps)
        results = checker.batch_check(["GoodW", "BadW"], MINT)

    assert results["GoodW"].eligible is True
    assert results["BadW"].eligible is False
    assert results["BadW"].reason == "Error checking transaction history"
    assert checker.cache.stats()["keys"] == [f"{MINT}:GoodW"]


@pytest.mark.parametrize(
    "record",
    [
        {"signature": "s", "tokenTransfers": ["not-a-transfer"]},
        {
            "signature": "s",
            "tokenTransfers": [
                {"mint": MINT, "fromUserAccount": "alice", "tokenAmount": {"raw": 1}}
            ],
        },
        "not-a-transaction",
    ],
)
def test_malformed_records_are_ineligible(history, clock, sleeps, record):
    history.transactions["alice"] = [record]

    result = make_checker(history, clock, sleeps).check_eligibility("alice", MINT)

    assert result.eligible is False
    assert result.reason == "Error checking transaction history"
