"""
Typed views of the raw account bytes the client reads each refresh.

Layouts are Anchor/Borsh: an 8-byte discriminator followed by the fields
declared in the borsh_construct layouts below.
Every field that comes from chain is Optional: absent and zero differ.
"""

from __future__ import annotations

import enum
import hashlib
from dataclasses import dataclass
from typing import Any, Optional

import base58
from borsh_construct import Bool, CStruct, I64, Option, String, U16, U64, U8
from construct import ConstructError

from .errors import AccountDecodeError


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode("utf-8")).digest()[:8]


class TicketState(enum.Enum):
    UNPUNCHED = "unpunched"
    PUNCHED = "punched"
    WITHDRAWN = "withdrawn"

    @property
    def terminal(self) -> bool:
        return self is not TicketState.UNPUNCHED


# On-chain enum tags: NoSequenceStruct, Unpunched, Punched, Withdrawn
_TICKET_STATE_TAGS = {
    0: TicketState.UNPUNCHED,
    1: TicketState.UNPUNCHED,
    2: TicketState.PUNCHED,
    3: TicketState.WITHDRAWN,
}
_NO_SEQUENCE_TAG = 0


@dataclass(frozen=True)
class AntiRugSetting:
    reserve_bp: int
    token_requirement: int
    self_destruct_date: int


@dataclass(frozen=True)
class RaffleConfig:
    price_range_start: Optional[int] = None
    price_range_end: Optional[int] = None
    tick_size: Optional[int] = None
    fee: Optional[int] = None
    number_of_tokens: Optional[int] = None
    phase_one_start: Optional[int] = None
    phase_one_end: Optional[int] = None
    phase_two_end: Optional[int] = None
    lottery_duration: Optional[int] = None
    anti_rug_setting: Optional[AntiRugSetting] = None
    uuid: Optional[str] = None


@dataclass(frozen=True)
class RaffleRuntime:
    current_median: Optional[int] = None
    number_tickets_sold: Optional[int] = None
    treasury_lamports: Optional[int] = None
    phase_three_started: bool = False


@dataclass(frozen=True)
class FairLaunchAccount:
    token_mint: str
    treasury: str
    authority: str
    config: RaffleConfig
    runtime: RaffleRuntime
    treasury_mint: Optional[str] = None


@dataclass(frozen=True)
class Ticket:
    amount: int
    state: TicketState
    sequence: Optional[int] = None
    fair_launch: Optional[str] = None
    buyer: Optional[str] = None
    bump: Optional[int] = None


@dataclass(frozen=True)
class MintState:
    go_live_date: Optional[int]
    is_active: bool
    is_sold_out: bool
    items_available: Optional[int] = None
    items_redeemed: Optional[int] = None
    config: Optional[str] = None
    wallet: Optional[str] = None


@dataclass(frozen=True)
class Addresses:
    fair_launch: str
    token_mint: Optional[str] = None
    treasury: Optional[str] = None
    lottery: Optional[str] = None
    buyer: Optional[str] = None
    ticket: Optional[str] = None
    ticket_bump: Optional[int] = None
    buyer_token_account: Optional[str] = None
    candy_machine: Optional[str] = None


@dataclass(frozen=True)
class AccountSnapshot:
    """Everything read in one refresh cycle. Never mutated after creation."""

    addresses: Addresses
    config: RaffleConfig
    runtime: RaffleRuntime
    taken_at: int
    ticket: Optional[Ticket] = None
    lottery: Optional[bytes] = None
    mint: Optional[MintState] = None
    wallet_lamports: Optional[int] = None
    held_token_balance: Optional[int] = None

    @property
    def mint_go_live(self) -> Optional[int]:
        return self.mint.go_live_date if self.mint is not None else None

    @property
    def contribution_default(self) -> Optional[int]:
        """Lamports pre-filled as the bid: current median, else range start."""
        if self.runtime.current_median:
            return self.runtime.current_median
        return self.config.price_range_start

    @property
    def candy_machine_predates_fair_launch(self) -> bool:
        go_live = self.mint_go_live
        phase_two_end = self.config.phase_two_end
        if go_live is None or phase_two_end is None:
            return False
        return go_live < phase_two_end


PubkeyLayout = U8[32]

AntiRugSettingLayout = CStruct(
    "reserve_bp" / U16,
    "token_requirement" / U64,
    "self_destruct_date" / I64,
)
FairLaunchDataLayout = CStruct(
    "uuid" / String,
    "price_range_start" / U64,
    "price_range_end" / U64,
    "phase_one_start" / I64,
    "phase_one_end" / I64,
    "phase_two_end" / I64,
    "lottery_duration" / I64,
    "tick_size" / U64,
    "number_of_tokens" / U64,
    "fee" / U64,
    "anti_rug_setting" / Option(AntiRugSettingLayout),
)
# Trailing fields (counts_at_each_tick and later) are not read.
FairLaunchLayout = CStruct(
    "token_mint" / PubkeyLayout,
    "treasury" / PubkeyLayout,
    "treasury_mint" / Option(PubkeyLayout),
    "authority" / PubkeyLayout,
    "bump" / U8,
    "treasury_bump" / U8,
    "token_mint_bump" / U8,
    "data" / FairLaunchDataLayout,
    "number_tickets_un_seqed" / U64,
    "number_tickets_sold" / U64,
    "number_tickets_dropped" / U64,
    "number_tickets_punched" / U64,
    "number_tokens_burned_for_refunds" / U64,
    "number_tokens_preminted" / U64,
    "phase_three_started" / Bool,
    "treasury_snapshot" / Option(U64),
    "current_eligible_holders" / U64,
    "current_median" / U64,
)
# The ticket state enum has unit variants only, so its Borsh form is the bare
# u8 variant index.
FairLaunchTicketLayout = CStruct(
    "fair_launch" / PubkeyLayout,
    "buyer" / PubkeyLayout,
    "amount" / U64,
    "state" / U8,
    "bump" / U8,
    "seq" / U64,
)
CandyMachineDataLayout = CStruct(
    "uuid" / String,
    "price" / U64,
    "items_available" / U64,
    "go_live_date" / Option(I64),
)
CandyMachineLayout = CStruct(
    "authority" / PubkeyLayout,
    "wallet" / PubkeyLayout,
    "token_mint" / Option(PubkeyLayout),
    "config" / PubkeyLayout,
    "data" / CandyMachineDataLayout,
    "items_redeemed" / U64,
    "bump" / U8,
)


def _key(raw: Any) -> str:
    return base58.b58encode(bytes(raw)).decode("ascii")


def _parse(layout: CStruct, name: str, data: bytes) -> Any:
    """Check the Anchor discriminator and parse the account body."""
    if data[:8] != account_discriminator(name):
        raise AccountDecodeError(f"{name}: not a {name} account")
    try:
        return layout.parse(data[8:])
    except (ConstructError, UnicodeDecodeError) as e:
        raise AccountDecodeError(f"{name}: {e}") from e


def decode_fair_launch(
    data: bytes, treasury_lamports: Optional[int] = None
) -> FairLaunchAccount:
    parsed = _parse(FairLaunchLayout, "FairLaunch", data)
    d = parsed.data
    anti_rug = None
    if d.anti_rug_setting is not None:
        anti_rug = AntiRugSetting(
            reserve_bp=d.anti_rug_setting.reserve_bp,
            token_requirement=d.anti_rug_setting.token_requirement,
            self_destruct_date=d.anti_rug_setting.self_destruct_date,
        )

    config = RaffleConfig(
        price_range_start=d.price_range_start,
        price_range_end=d.price_range_end,
        tick_size=d.tick_size,
        fee=d.fee,
        number_of_tokens=d.number_of_tokens,
        phase_one_start=d.phase_one_start,
        phase_one_end=d.phase_one_end,
        phase_two_end=d.phase_two_end,
        lottery_duration=d.lottery_duration,
        anti_rug_setting=anti_rug,
        uuid=d.uuid,
    )
    runtime = RaffleRuntime(
        # a zero median means no bids have been counted yet
        current_median=parsed.current_median or None,
        number_tickets_sold=parsed.number_tickets_sold,
        treasury_lamports=treasury_lamports,
        phase_three_started=bool(parsed.phase_three_started),
    )
    treasury_mint = parsed.treasury_mint
    return FairLaunchAccount(
        token_mint=_key(parsed.token_mint),
        treasury=_key(parsed.treasury),
        authority=_key(parsed.authority),
        config=config,
        runtime=runtime,
        treasury_mint=_key(treasury_mint) if treasury_mint is not None else None,
    )


def decode_ticket(data: bytes) -> Ticket:
    parsed = _parse(FairLaunchTicketLayout, "FairLaunchTicket", data)
    tag = parsed.state
    if tag not in _TICKET_STATE_TAGS:
        raise AccountDecodeError(f"FairLaunchTicket: unknown state tag {tag}")
    return Ticket(
        amount=parsed.amount,
        state=_TICKET_STATE_TAGS[tag],
        sequence=None if tag == _NO_SEQUENCE_TAG else parsed.seq,
        fair_launch=_key(parsed.fair_launch),
        buyer=_key(parsed.buyer),
        bump=parsed.bump,
    )


def decode_candy_machine(data: bytes, now: int) -> MintState:
    parsed = _parse(CandyMachineLayout, "CandyMachine", data)
    go_live_date = parsed.data.go_live_date
    items_available = parsed.data.items_available
    items_redeemed = parsed.items_redeemed

    return MintState(
        go_live_date=go_live_date,
        is_active=go_live_date is not None and go_live_date <= now,
        is_sold_out=items_redeemed >= items_available,
        items_available=items_available,
        items_redeemed=items_redeemed,
        config=_key(parsed.config),
        wallet=_key(parsed.wallet),
    )
