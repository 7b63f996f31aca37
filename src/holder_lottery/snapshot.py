"""Canonical, publishable lottery snapshots.

A snapshot must be published (with its digest) before the seed block exists;
otherwise whoever picks the seed could steer the result.
"""

from __future__ import annotations

import csv
import hashlib
import io
import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from .draw import canonical_order, eligible_entries
from .entries import calculate_tickets
from .errors import SnapshotIntegrityError
from .models import LotteryEntry, LotterySnapshot

SNAPSHOT_FORMAT = "holder-lottery-snapshot/1"


def create_snapshot(
    entries: Iterable[LotteryEntry], token_mint: str, now: Optional[datetime] = None
) -> LotterySnapshot:
    ordered = canonical_order(eligible_entries(entries))
    return LotterySnapshot(
        entries=tuple(ordered),
        total_tickets=sum(e.tickets for e in ordered),
        token_mint=token_mint,
        snapshot_time=now or datetime.now(timezone.utc),
    )


def snapshot_to_dict(snapshot: LotterySnapshot) -> Dict[str, Any]:
    return {
        "format": SNAPSHOT_FORMAT,
        "token_mint": snapshot.token_mint,
        "snapshot_time": snapshot.snapshot_time.isoformat(),
        "total_tickets": snapshot.total_tickets,
        "entries": [
            {"wallet": e.wallet, "balance": str(e.balance), "tickets": e.tickets}
            for e in snapshot.entries
        ],
    }


def canonical_json(snapshot: LotterySnapshot) -> str:
    return json.dumps(snapshot_to_dict(snapshot), separators=(",", ":"), ensure_ascii=True)


def snapshot_digest(snapshot: LotterySnapshot) -> str:
    """SHA-256 of the compact canonical JSON; publish it with the snapshot."""
    return hashlib.sha256(canonical_json(snapshot).encode("utf-8")).hexdigest()


def dump_snapshot(snapshot: LotterySnapshot, path: str) -> str:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot_to_dict(snapshot), f, indent=2)
        f.write("\n")
    return snapshot_digest(snapshot)


def snapshot_from_dict(data: Dict[str, Any]) -> LotterySnapshot:
    """Rebuilds a published snapshot, refusing anything a draw could not trust."""
    try:
        raw_entries = data["entries"]
        token_mint = data["token_mint"]
        total = int(data["total_tickets"])
        taken_at = datetime.fromisoformat(data["snapshot_time"])
    except (KeyError, TypeError, ValueError) as e:
        raise SnapshotIntegrityError(f"Malformed snapshot: {e}") from e

    entries = []
    for item in raw_entries:
        try:
            balance = Decimal(str(item["balance"]))
            tickets = int(item["tickets"])
            wallet = item["wallet"]
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise SnapshotIntegrityError(f"Malformed snapshot entry {item!r}") from e

        expected = calculate_tickets(balance)
        if tickets != expected or tickets < 1:
            raise SnapshotIntegrityError(
                f"Ticket mismatch for {wallet}: snapshot={tickets} recomputed={expected}"
            )
        entries.append(LotteryEntry(wallet, balance, tickets, eligible=True))

    wallets = [e.wallet for e in entries]
    if wallets != sorted(wallets) or len(set(wallets)) != len(wallets):
        raise SnapshotIntegrityError("Snapshot entries are not in canonical wallet order")

    recomputed = sum(e.tickets for e in entries)
    if recomputed != total:
        raise SnapshotIntegrityError(
            f"Total tickets mismatch: snapshot={total} recomputed={recomputed}"
        )

    return LotterySnapshot(
        entries=tuple(entries),
        total_tickets=total,
        token_mint=token_mint,
        snapshot_time=taken_at,
    )


def load_snapshot(path: str) -> LotterySnapshot:
    with open(path, "r", encoding="utf-8") as f:
        return snapshot_from_dict(json.load(f))


def export_csv(entries: Iterable[LotteryEntry]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["wallet", "balance", "tickets"])
    for e in entries:
        if e.eligible:
            writer.writerow([e.wallet, str(e.balance), e.tickets])
    return buf.getvalue()


def export_json(entries: Iterable[LotteryEntry]) -> str:
    return json.dumps([e.to_dict() for e in entries if e.eligible], indent=2)


def format_wallet(wallet: str) -> str:
    return f"{wallet[:4]}...{wallet[-4:]}"
