from __future__ import annotations

import argparse
import json
import logging
import time
from datetime import datetime, timedelta, timezone

from .config import Settings
from .draw import seed_from_blockhash
from .eligibility import load_excluded_wallets
from .errors import LotteryError
from .models import AnalysisReport
from .pipeline import LotteryPipeline
from .rpc import RpcClient, load_seed_from_block_feed_file
from .snapshot import dump_snapshot, export_csv, export_json, format_wallet, load_snapshot
from .verify import build_audit, verify_audit


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _pipeline(args: argparse.Namespace) -> LotteryPipeline:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    return LotteryPipeline.from_settings(
        settings, extra_excluded=load_excluded_wallets(args.exclude_file)
    )


def _progress(checked: int, total: int) -> None:
    logging.getLogger("lottery").info("Checked %d/%d wallets", checked, total)


def _print_report(report: AnalysisReport, top: int) -> None:
    stats = report.stats()
    print("========================================")
    print(f"🎟  {report.symbol} ({report.name})")
    print("========================================")
    print(f"Mint             : {report.token_mint}")
    print(f"Source           : {stats['source']}")
    print(f"Total holders    : {stats['total_holders']}")
    print(f"With 10k+ tokens : {stats['holders_with_min_balance']}")
    print(f"Excluded (LP)    : {stats['excluded']}")
    print(f"Eligible         : {stats['eligible_holders']}")
    print(f"Disqualified     : {stats['disqualified']}")
    print(f"Total tickets    : {stats['total_tickets']}")
    if report.timed_out:
        print("⚠️  Deadline reached: results are partial")
    print("----------------------------------------")
    for e in report.entries[:top]:
        status = "✅" if e.eligible else f"❌ {e.reason or 'ineligible'}"
        print(f"{format_wallet(e.wallet)}  {e.tickets:>5} tickets  {status}")


def _write_exports(args: argparse.Namespace, report: AnalysisReport) -> None:
    if args.csv:
        with open(args.csv, "w", encoding="utf-8") as f:
            f.write(export_csv(report.entries))
        print(f"🧾 Wrote CSV : {args.csv}")
    if args.json:
        with open(args.json, "w", encoding="utf-8") as f:
            f.write(export_json(report.entries))
        print(f"🧾 Wrote JSON: {args.json}")


def cmd_analyze(args: argparse.Namespace) -> int:
    with _pipeline(args) as pipeline:
        report = pipeline.analyze(args.mint, deadline_s=args.deadline, on_progress=_progress)
    _print_report(report, args.top)
    _write_exports(args, report)
    return 0


def cmd_pick(args: argparse.Namespace) -> int:
    with _pipeline(args) as pipeline:
        report = pipeline.pick(args.mint, deadline_s=args.deadline, on_progress=_progress)
    _print_report(report, args.top)
    result = report.result
    print("----------------------------------------")
    print("🏆 WINNER (random draw, not verifiable)")
    print(f"Address       : {result.winner.wallet}")
    print(f"Tickets       : {result.winner.tickets}")
    print(f"Winning ticket: {result.winning_ticket} / {result.total_tickets}")
    return 0


def cmd_snapshot(args: argparse.Namespace) -> int:
    with _pipeline(args) as pipeline:
        report = pipeline.analyze(args.mint, deadline_s=args.deadline, on_progress=_progress)
    if report.timed_out:
        raise SystemExit("Deadline reached; refusing to publish a partial snapshot.")

    snapshot = LotteryPipeline.snapshot(report)
    digest = dump_snapshot(snapshot, args.out)
    print("========================================")
    print("📸 SNAPSHOT (publish before the draw block)")
    print("========================================")
    print(f"Mint          : {snapshot.token_mint}")
    print(f"Entrants      : {len(snapshot.entries)}")
    print(f"Total tickets : {snapshot.total_tickets}")
    print(f"SHA-256       : {digest}")
    print(f"🧾 Wrote snapshot: {args.out}")
    return 0


def cmd_draw(args: argparse.Namespace) -> int:
    log = logging.getLogger("draw")
    snapshot = load_snapshot(args.snapshot)

    # Seed source
    if args.seed:
        raw_seed, seed, seed_source = args.seed, args.seed, "cli:--seed"
        block_id = args.slot if args.slot is not None else "manual"
    else:
        if args.slot is None:
            raise SystemExit("Either --seed or --slot is required.")
        if args.block_feed_file:
            raw_seed = load_seed_from_block_feed_file(args.block_feed_file, slot_hint=args.slot)
            seed_source = f"file:{args.block_feed_file}"
        else:
            settings = Settings.from_env(rpc_url_override=args.rpc_url)
            with RpcClient(settings.rpc_url, timeout_s=args.timeout) as rpc:
                raw_seed = rpc.get_blockhash_for_slot(args.slot)
            seed_source = "rpc:getBlock"
        seed = seed_from_blockhash(raw_seed)
        block_id = args.slot

    log.info("Seed (raw)  : %s", raw_seed)
    log.info("Seed source : %s", seed_source)

    result = LotteryPipeline.pick_verifiable(snapshot, seed, block_id)
    audit = build_audit(snapshot, result, seed_source=seed_source, raw_seed=raw_seed)
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(audit, f, indent=2)

    print("========================================")
    print("🔒 VERIFIABLE HOLDER LOTTERY DRAW")
    print("========================================")
    print(f"Mint          : {snapshot.token_mint}")
    print(f"Block         : {result.block_id}")
    print(f"Seed (hex)    : {result.seed}")
    print("----------------------------------------")
    print("🏆 WINNER")
    print(f"Address       : {result.winner.wallet}")
    print(f"Tickets       : {result.winner.tickets}")
    print(f"Winning ticket: {result.winning_ticket} / {result.total_tickets}")
    print("----------------------------------------")
    print(f"🧾 Wrote audit: {args.out}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_audit(args.snapshot, args.audit)
    print("✅ AUDIT VERIFIED")
    print(f"Winner        : {result['winner']}")
    print(f"Winning Ticket: {result['winning_ticket']}")
    print(f"Total Tickets : {result['total_tickets']}")
    print(f"Snapshot hash : {result['digest']}")
    return 0


def cmd_predict(args: argparse.Namespace) -> int:
    """Estimates the slot for a wall-clock time, to announce the seed block in advance."""
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    with RpcClient(settings.rpc_url, timeout_s=args.timeout) as rpc:
        curr_slot = rpc.get_slot()
        curr_time = rpc.get_block_time(curr_slot)

    target_h, target_m = map(int, args.time.split(":"))
    now = datetime.now()
    target_dt = now.replace(hour=target_h, minute=target_m, second=0, microsecond=0)

    # If the time already passed, assume tomorrow
    if target_dt.timestamp() < time.time():
        target_dt += timedelta(days=1)

    # Solana target: 400ms per slot
    seconds_to_wait = target_dt.timestamp() - curr_time
    target_slot = curr_slot + int(seconds_to_wait / 0.4)

    print("--- SLOT PREDICTION ---")
    print(f"Target Time       : {target_dt.strftime('%Y-%m-%d %H:%M:%S')} local")
    print(
        f"Target Time (UTC) : {target_dt.astimezone(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')}"
    )
    print(f"Current Slot      : {curr_slot}")
    print(f"Projected Slot    : {target_slot}")
    print("Assumed Slot Time : 400 ms (heuristic)")
    print("-" * 23)
    print(f'PUBLIC ANNOUNCEMENT:\n"Draw slot is {target_slot}"')
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="holder-lottery",
        description="Ticket-weighted lottery for holders who never sold.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")
    p.add_argument(
        "--exclude-file",
        default=None,
        help="Extra addresses to exclude, one per line ('#' comments allowed).",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    def add_run_args(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("mint", help="Token mint address.")
        sp.add_argument(
            "--deadline", type=float, default=300.0, help="Overall time budget in seconds."
        )
        sp.add_argument("--top", type=int, default=20, help="Entries to print.")

    a = sub.add_parser("analyze", help="Fetch holders and check eligibility.")
    add_run_args(a)
    a.add_argument("--csv", default=None, help="Write eligible entries as CSV.")
    a.add_argument("--json", default=None, help="Write eligible entries as JSON.")
    a.set_defaults(func=cmd_analyze)

    pk = sub.add_parser("pick", help="Analyze and draw a random (non-verifiable) winner.")
    add_run_args(pk)
    pk.set_defaults(func=cmd_pick)

    s = sub.add_parser("snapshot", help="Analyze and write the canonical snapshot JSON.")
    add_run_args(s)
    s.add_argument("--out", default="snapshot.json", help="Snapshot output path.")
    s.set_defaults(func=cmd_snapshot)

    pred = sub.add_parser("predict", help="Calculate a future slot for a specific time.")
    pred.add_argument("--time", required=True, help="Target time in 24h format (e.g. 22:00)")
    pred.set_defaults(func=cmd_predict)

    d = sub.add_parser("draw", help="Verifiable draw from a published snapshot.")
    d.add_argument("--snapshot", required=True, help="Path to snapshot.json.")
    d.add_argument("--slot", type=int, default=None, help="Finalized target slot.")
    d.add_argument("--seed", default=None, help="Hex seed (0x prefix optional).")
    d.add_argument(
        "--block-feed-file",
        default=None,
        help=(
            "Path to a block feed file to source the seed (blockhash). "
            "Can be raw string or JSON containing blockhash."
        ),
    )
    d.add_argument("--out", default="audit.json", help="Audit output JSON path.")
    d.set_defaults(func=cmd_draw)

    v = sub.add_parser("verify", help="Verify an audit against its snapshot.")
    v.add_argument("--snapshot", required=True, help="Path to snapshot.json.")
    v.add_argument("--audit", required=True, help="Path to audit.json.")
    v.set_defaults(func=cmd_verify)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    try:
        code = args.func(args)
    except LotteryError as e:
        raise SystemExit(f"error: {e}")
    raise SystemExit(code)
