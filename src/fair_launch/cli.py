from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .accounts import AccountSnapshot
from .config import Settings
from .confirmation import ConfirmationWatcher
from .lottery import bit_location, is_winner
from .phase import phase_deadline, resolve_phase
from .project_constants import LAMPORTS_PER_SOL
from .rpc import RpcClient
from .snapshot import fetch_snapshot
from .tickets import is_fully_claimed, snapshot_is_winner, ticket_status


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def to_sol(lamports: Optional[int]) -> Optional[float]:
    if lamports is None:
        return None
    return round(lamports / LAMPORTS_PER_SOL, 4)


def _fmt_ts(ts: Optional[int]) -> str:
    if ts is None:
        return "-"
    when = datetime.fromtimestamp(ts, tz=timezone.utc)
    return when.strftime("%Y-%m-%d %H:%M:%S UTC")


def _settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(
        rpc_url_override=args.rpc_url, fair_launch_override=args.fair_launch
    )


def _require_fair_launch(settings: Settings) -> str:
    if not settings.fair_launch_id:
        raise SystemExit(
            "Missing FAIR_LAUNCH_ID. Put it in .env or pass --fair-launch."
        )
    return settings.fair_launch_id


async def _load(
    args: argparse.Namespace, settings: Settings, wallet: Optional[str]
) -> AccountSnapshot:
    async with RpcClient(settings.rpc_url, timeout_s=args.timeout) as rpc:
        return await fetch_snapshot(
            rpc,
            _require_fair_launch(settings),
            buyer=wallet,
            candy_machine_id=settings.candy_machine_id,
        )


def summarize(snapshot: AccountSnapshot, now: int) -> Dict[str, Any]:
    phase = resolve_phase(snapshot.config, snapshot.runtime, snapshot.mint_go_live, now)
    summary: Dict[str, Any] = {
        "phase": phase.value,
        "phase_ends": _fmt_ts(
            phase_deadline(phase, snapshot.config, snapshot.mint_go_live)
        ),
        "bids": snapshot.runtime.number_tickets_sold or 0,
        "median_sol": to_sol(snapshot.runtime.current_median),
        "treasury_sol": to_sol(snapshot.runtime.treasury_lamports),
        "price_range_sol": [
            to_sol(snapshot.config.price_range_start),
            to_sol(snapshot.config.price_range_end),
        ],
    }
    if snapshot.addresses.buyer:
        ticket = snapshot.ticket
        summary["wallet_sol"] = to_sol(snapshot.wallet_lamports)
        summary["ticket_status"] = ticket_status(snapshot, now).value
        summary["ticket_sol"] = to_sol(ticket.amount) if ticket else None
        summary["ticket_seq"] = ticket.sequence if ticket else None
        summary["winner"] = snapshot_is_winner(snapshot)
        summary["fully_claimed"] = is_fully_claimed(ticket, snapshot.held_token_balance)
    if snapshot.mint is not None:
        summary["mint"] = {
            "go_live": _fmt_ts(snapshot.mint.go_live_date),
            "active": snapshot.mint.is_active,
            "sold_out": snapshot.mint.is_sold_out,
        }
    return summary


def cmd_status(args: argparse.Namespace) -> int:
    settings = _settings(args)
    snapshot = asyncio.run(_load(args, settings, args.wallet))
    summary = summarize(snapshot, int(time.time()))

    if args.json:
        print(json.dumps(summary, indent=2))
        return 0

    print("========================================")
    print("FAIR LAUNCH STATUS")
    print("========================================")
    print(f"Fair launch   : {snapshot.addresses.fair_launch}")
    print(f"Phase         : {summary['phase']} (until {summary['phase_ends']})")
    print(f"Bids          : {summary['bids']}")
    print(f"Median bid    : {summary['median_sol']} SOL")
    print(f"Total raised  : {summary['treasury_sol']} SOL")
    if args.wallet:
        print("----------------------------------------")
        print(f"Wallet        : {args.wallet} ({summary['wallet_sol']} SOL)")
        print(f"Ticket        : {summary['ticket_status']}")
        print(f"Bid           : {summary['ticket_sol']} SOL")
        print(f"Sequence      : {summary['ticket_seq']}")
        print(f"Winner        : {summary['winner']}")
    if "mint" in summary:
        print("----------------------------------------")
        print(f"Mint go-live  : {summary['mint']['go_live']}")
        print(f"Mint active   : {summary['mint']['active']}")
        print(f"Sold out      : {summary['mint']['sold_out']}")
    return 0


def cmd_phase(args: argparse.Namespace) -> int:
    settings = _settings(args)
    snapshot = asyncio.run(_load(args, settings, None))
    now = args.at if args.at is not None else int(time.time())
    phase = resolve_phase(snapshot.config, snapshot.runtime, snapshot.mint_go_live, now)
    print(phase.value)
    return 0


def cmd_winner(args: argparse.Namespace) -> int:
    settings = _settings(args)
    snapshot = asyncio.run(_load(args, settings, None))
    byte_index, position = bit_location(args.seq)
    won = is_winner(
        snapshot.lottery,
        args.seq,
        None,
        snapshot.runtime.phase_three_started,
        snapshot.config.number_of_tokens,
    )
    print(f"Sequence      : {args.seq}")
    print(f"Byte / bit    : {byte_index} / {position}")
    print(f"Resolved      : {snapshot.runtime.phase_three_started}")
    print(f"Winner        : {won}")
    return 0


async def _confirm(args: argparse.Namespace, settings: Settings) -> int:
    async with RpcClient(settings.rpc_url, timeout_s=args.timeout) as rpc:
        watcher = ConfirmationWatcher(rpc, poll_interval_s=settings.poll_interval_s)
        result = await watcher.wait(
            args.signature,
            args.wait_ms or settings.tx_timeout_ms,
            settings.commitment,
        )
    print(f"Signature     : {result.signature}")
    print(f"Status        : {result.status.value}")
    if result.slot is not None:
        print(f"Slot          : {result.slot}")
    if result.program_error_code is not None:
        print(f"Program error : {result.program_error_code}")
    return 0 if result.ok else 1


def cmd_confirm(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    return asyncio.run(_confirm(args, settings))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fair-launch",
        description="Inspect a fair launch raffle and track its transactions.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument(
        "--fair-launch", default=None, help="Fair launch account (else FAIR_LAUNCH_ID)."
    )
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("status", help="Show raffle state and a wallet's ticket.")
    s.add_argument("--wallet", default=None, help="Participant wallet address.")
    s.add_argument("--json", action="store_true", help="Print machine-readable JSON.")
    s.set_defaults(func=cmd_status)

    ph = sub.add_parser("phase", help="Print the raffle phase.")
    ph.add_argument(
        "--at", type=int, default=None, help="Unix time to evaluate (default now)."
    )
    ph.set_defaults(func=cmd_phase)

    w = sub.add_parser("winner", help="Check the lottery bit of a ticket sequence.")
    w.add_argument("--seq", required=True, type=int, help="Ticket sequence number.")
    w.set_defaults(func=cmd_winner)

    c = sub.add_parser("confirm", help="Wait for a transaction signature to confirm.")
    c.add_argument("--signature", required=True, help="Transaction signature.")
    c.add_argument(
        "--wait-ms", type=int, default=None, help="Deadline (else TX_TIMEOUT_MS)."
    )
    c.set_defaults(func=cmd_confirm)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
