from __future__ import annotations

import enum
from typing import Optional

from .accounts import AccountSnapshot, Ticket, TicketState
from .lottery import is_winner
from .phase import BIDDING_PHASES, Phase, RESOLUTION_PHASES, resolve_phase


class TicketStatus(enum.Enum):
    NO_BID = "no_bid"
    ACTIVE_BID = "active_bid"
    BELOW_MEDIAN_PENDING = "below_median_pending"
    BELOW_MEDIAN_EXCLUDED = "below_median_excluded"
    WITHDRAWN = "withdrawn"
    WINNER_UNPUNCHED = "winner_unpunched"
    WINNER_PUNCHED = "winner_punched"
    LOSER_ELIGIBLE_FOR_REFUND = "loser_eligible_for_refund"


TERMINAL_STATUSES = frozenset({TicketStatus.WITHDRAWN, TicketStatus.WINNER_PUNCHED})


def below_median(ticket: Ticket, current_median: Optional[int]) -> bool:
    return current_median is not None and ticket.amount < current_median


def derive_ticket_status(
    ticket: Optional[Ticket],
    phase: Phase,
    current_median: Optional[int],
    winner: bool,
) -> TicketStatus:
    if ticket is None:
        return TicketStatus.NO_BID
    if ticket.state is TicketState.WITHDRAWN:
        return TicketStatus.WITHDRAWN
    if ticket.state is TicketState.PUNCHED:
        return TicketStatus.WINNER_PUNCHED

    if phase in BIDDING_PHASES:
        if below_median(ticket, current_median):
            return TicketStatus.BELOW_MEDIAN_PENDING
        return TicketStatus.ACTIVE_BID

    if phase in RESOLUTION_PHASES:
        if below_median(ticket, current_median):
            return TicketStatus.BELOW_MEDIAN_EXCLUDED
        if phase is Phase.LOTTERY_PENDING:
            return TicketStatus.ACTIVE_BID
        if winner:
            return TicketStatus.WINNER_UNPUNCHED
        return TicketStatus.LOSER_ELIGIBLE_FOR_REFUND

    return TicketStatus.ACTIVE_BID


def snapshot_is_winner(snapshot: AccountSnapshot) -> bool:
    ticket = snapshot.ticket
    return is_winner(
        snapshot.lottery,
        ticket.sequence if ticket is not None else None,
        snapshot.held_token_balance,
        snapshot.runtime.phase_three_started,
        snapshot.config.number_of_tokens,
    )


def ticket_status(snapshot: AccountSnapshot, now: int) -> TicketStatus:
    phase = resolve_phase(snapshot.config, snapshot.runtime, snapshot.mint_go_live, now)
    return derive_ticket_status(
        snapshot.ticket,
        phase,
        snapshot.runtime.current_median,
        snapshot_is_winner(snapshot),
    )


def is_fully_claimed(
    ticket: Optional[Ticket], held_token_balance: Optional[int]
) -> bool:
    """Punched and the raffle token already spent on a mint."""
    return (
        ticket is not None
        and ticket.state is TicketState.PUNCHED
        and held_token_balance == 0
    )


def is_regression(previous: TicketStatus, current: TicketStatus) -> bool:
    """True when a later refresh reports a terminal ticket as live again."""
    return previous in TERMINAL_STATUSES and current is not previous
