from __future__ import annotations

from dataclasses import asdict, replace
from typing import Dict, List, Optional, Sequence

import base58

from fair_launch.accounts import (
    AccountSnapshot,
    Addresses,
    AntiRugSetting,
    CandyMachineLayout,
    FairLaunchLayout,
    FairLaunchTicketLayout,
    MintState,
    RaffleConfig,
    RaffleRuntime,
    Ticket,
    account_discriminator,
)
from fair_launch.confirmation import ConfirmationResult, ConfirmationStatus
from fair_launch.project_constants import LAMPORTS_PER_SOL, LOTTERY_HEADER_SIZE

# Timeline used across tests (unix seconds).
PHASE_ONE_START = 1_000
PHASE_ONE_END = 2_000
PHASE_TWO_END = 3_000
LOTTERY_DURATION = 500
GO_LIVE = 5_000
SELF_DESTRUCT = 9_000


def address(n: int) -> str:
    return base58.b58encode(bytes([n]) * 32).decode("ascii")


def raw_key(n: int) -> bytes:
    return bytes([n]) * 32


def _key(n: int) -> List[int]:
    return list(raw_key(n))


def encode_fair_launch(
    *,
    price_range_start: int = LAMPORTS_PER_SOL,
    price_range_end: int = 3 * LAMPORTS_PER_SOL,
    tick_size: int = LAMPORTS_PER_SOL // 10,
    fee: int = 10_000,
    number_of_tokens: int = 16,
    anti_rug: Optional[AntiRugSetting] = None,
    number_tickets_sold: int = 7,
    phase_three_started: bool = False,
    current_median: int = 2 * LAMPORTS_PER_SOL,
) -> bytes:
    body = FairLaunchLayout.build(
        {
            "token_mint": _key(1),
            "treasury": _key(2),
            "treasury_mint": None,
            "authority": _key(3),
            "bump": 254,
            "treasury_bump": 253,
            "token_mint_bump": 252,
            "data": {
                "uuid": "abc123",
                "price_range_start": price_range_start,
                "price_range_end": price_range_end,
                "phase_one_start": PHASE_ONE_START,
                "phase_one_end": PHASE_ONE_END,
                "phase_two_end": PHASE_TWO_END,
                "lottery_duration": LOTTERY_DURATION,
                "tick_size": tick_size,
                "number_of_tokens": number_of_tokens,
                "fee": fee,
                "anti_rug_setting": asdict(anti_rug) if anti_rug else None,
            },
            "number_tickets_un_seqed": 0,
            "number_tickets_sold": number_tickets_sold,
            "number_tickets_dropped": 0,
            "number_tickets_punched": 0,
            "number_tokens_burned_for_refunds": 0,
            "number_tokens_preminted": 0,
            "phase_three_started": phase_three_started,
            "treasury_snapshot": 42,
            "current_eligible_holders": 5,
            "current_median": current_median,
        }
    )
    # empty counts_at_each_tick vector
    return account_discriminator("FairLaunch") + body + bytes(4)


def encode_ticket(*, amount: int, state_tag: int = 1, seq: int = 3) -> bytes:
    body = FairLaunchTicketLayout.build(
        {
            "fair_launch": _key(4),
            "buyer": _key(5),
            "amount": amount,
            "state": state_tag,
            "bump": 255,
            "seq": seq,
        }
    )
    # gotten_participation: false
    return account_discriminator("FairLaunchTicket") + body + b"\x00"


def encode_candy_machine(
    *, items_available: int, items_redeemed: int, go_live: Optional[int]
) -> bytes:
    body = CandyMachineLayout.build(
        {
            "authority": _key(6),
            "wallet": _key(7),
            "token_mint": None,
            "config": _key(8),
            "data": {
                "uuid": "cm0001",
                "price": LAMPORTS_PER_SOL,
                "items_available": items_available,
                "go_live_date": go_live,
            },
            "items_redeemed": items_redeemed,
            "bump": 250,
        }
    )
    return account_discriminator("CandyMachine") + body


def lottery_bytes(flags: Sequence[int]) -> bytes:
    return bytes(LOTTERY_HEADER_SIZE) + bytes(flags)


def make_config(**overrides) -> RaffleConfig:
    base = RaffleConfig(
        price_range_start=LAMPORTS_PER_SOL,
        price_range_end=3 * LAMPORTS_PER_SOL,
        tick_size=LAMPORTS_PER_SOL // 10,
        fee=10_000,
        number_of_tokens=16,
        phase_one_start=PHASE_ONE_START,
        phase_one_end=PHASE_ONE_END,
        phase_two_end=PHASE_TWO_END,
        lottery_duration=LOTTERY_DURATION,
    )
    return replace(base, **overrides)


def make_snapshot(
    *,
    ticket: Optional[Ticket] = None,
    config: Optional[RaffleConfig] = None,
    phase_three_started: bool = False,
    current_median: Optional[int] = 2 * LAMPORTS_PER_SOL,
    lottery: Optional[bytes] = None,
    mint: Optional[MintState] = None,
    wallet_lamports: Optional[int] = 10 * LAMPORTS_PER_SOL,
    held_token_balance: Optional[int] = None,
) -> AccountSnapshot:
    return AccountSnapshot(
        addresses=Addresses(
            fair_launch=address(10),
            token_mint=address(1),
            treasury=address(2),
            lottery=address(11),
            buyer=address(12),
            ticket=address(13),
            ticket_bump=255,
            buyer_token_account=address(14),
            candy_machine=address(15),
        ),
        config=config or make_config(),
        runtime=RaffleRuntime(
            current_median=current_median,
            number_tickets_sold=7,
            treasury_lamports=20 * LAMPORTS_PER_SOL,
            phase_three_started=phase_three_started,
        ),
        taken_at=0,
        ticket=ticket,
        lottery=lottery,
        mint=mint,
        wallet_lamports=wallet_lamports,
        held_token_balance=held_token_balance,
    )


def live_mint(**overrides) -> MintState:
    base = MintState(
        go_live_date=GO_LIVE,
        is_active=True,
        is_sold_out=False,
        items_available=10,
        items_redeemed=1,
        config=address(8),
        wallet=address(7),
    )
    return replace(base, **overrides)


class FakeSender:
    def __init__(self, error: Optional[BaseException] = None) -> None:
        self.sent: List[list] = []
        self.error = error

    async def send(self, instructions) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append(list(instructions))
        return f"sig{len(self.sent)}"


class FakeWatcher:
    """Returns a canned result per signature; confirmed by default."""

    def __init__(self, results: Optional[Dict[str, ConfirmationResult]] = None) -> None:
        self.results = results or {}
        self.calls: List[tuple] = []

    async def wait(self, signature: str, timeout_ms: int, commitment: str = "confirmed") -> ConfirmationResult:
        self.calls.append((signature, timeout_ms, commitment))
        return self.results.get(
            signature, ConfirmationResult(signature, ConfirmationStatus.CONFIRMED, slot=1)
        )
