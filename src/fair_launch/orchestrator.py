"""
Sequences the five mutating fair launch actions.

Every action validates against the snapshot it is handed (captured before
the action started), builds its instructions, submits them through a
TransactionSender, waits for confirmation and returns an Outcome. Nothing
is retried and nothing is raised to the caller.

Callers must keep at most one action in flight per ticket; `start` returns
a PendingAction whose `in_flight` property is the busy flag to serialize on.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence, Tuple

import httpx
from solders.instruction import Instruction

from . import instructions as ix
from .accounts import AccountSnapshot, TicketState
from .confirmation import ConfirmationStatus, ConfirmationWatcher
from .errors import ErrorKind, ValidationError, classify, classify_exception
from .phase import BIDDING_PHASES, Phase, resolve_phase
from .project_constants import (
    DEFAULT_COMMITMENT,
    DEFAULT_SAFETY_MARGIN_LAMPORTS,
    DEFAULT_TX_TIMEOUT_MS,
    LAMPORTS_PER_SOL,
)
from .tickets import is_fully_claimed, snapshot_is_winner

log = logging.getLogger(__name__)


class TransactionSender(Protocol):
    """Signs and submits instructions as one transaction, returning its signature.

    May raise ProgramRevert (simulation rejected), RpcError or httpx.HTTPError.
    """

    async def send(self, instructions: Sequence[Instruction]) -> str: ...


@dataclass(frozen=True)
class Outcome:
    action: str
    ok: bool
    signatures: Tuple[str, ...] = ()
    kind: Optional[ErrorKind] = None
    message: str = ""
    refresh_required: bool = False

    @classmethod
    def success(
        cls, action: str, signatures: Sequence[str], message: str = ""
    ) -> "Outcome":
        return cls(
            action, True, tuple(signatures), message=message, refresh_required=True
        )

    @classmethod
    def failure(
        cls,
        action: str,
        kind: ErrorKind,
        message: str,
        signatures: Sequence[str] = (),
        partial: bool = False,
    ) -> "Outcome":
        """`partial`: an earlier step of the action already landed on chain."""
        return cls(
            action,
            False,
            tuple(signatures),
            kind=kind,
            message=message,
            refresh_required=partial or kind.refresh_required,
        )


@dataclass
class PendingAction:
    action: str
    task: "asyncio.Future[Outcome]"

    @property
    def in_flight(self) -> bool:
        return not self.task.done()

    async def result(self) -> Outcome:
        return await self.task


def to_lamports(amount_sol: float | Decimal | str) -> int:
    try:
        value = Decimal(str(amount_sol))
    except InvalidOperation as e:
        raise ValidationError(
            ErrorKind.INVALID_AMOUNT, f"Not a number: {amount_sol!r}"
        ) from e
    if not value.is_finite():
        raise ValidationError(
            ErrorKind.INVALID_AMOUNT, f"Invalid bid amount {amount_sol}."
        )
    value *= LAMPORTS_PER_SOL
    if value < 0 or value != value.to_integral_value():
        raise ValidationError(
            ErrorKind.INVALID_AMOUNT, f"Invalid bid amount {amount_sol}."
        )
    return int(value)


class TransactionOrchestrator:
    def __init__(
        self,
        sender: TransactionSender,
        watcher: ConfirmationWatcher,
        timeout_ms: int = DEFAULT_TX_TIMEOUT_MS,
        commitment: str = DEFAULT_COMMITMENT,
        safety_margin: int = DEFAULT_SAFETY_MARGIN_LAMPORTS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.sender = sender
        self.watcher = watcher
        self.timeout_ms = timeout_ms
        self.commitment = commitment
        self.safety_margin = safety_margin
        self.clock = clock

    def start(
        self, operation: Awaitable[Outcome], action: str | None = None
    ) -> PendingAction:
        """Schedule an action and hand back its in-flight handle."""
        name = action or getattr(operation, "__name__", "action")
        return PendingAction(name, asyncio.ensure_future(operation))

    # -- actions ---------------------------------------------------------

    async def place_or_update_bid(
        self, snapshot: AccountSnapshot, amount_sol: float | Decimal | str
    ) -> Outcome:
        return await self._guard("place_or_update_bid", self._bid(snapshot, amount_sol))

    async def punch_ticket(self, snapshot: AccountSnapshot) -> Outcome:
        return await self._guard("punch_ticket", self._punch(snapshot))

    async def withdraw_ticket(self, snapshot: AccountSnapshot) -> Outcome:
        return await self._guard("withdraw_ticket", self._withdraw(snapshot))

    async def claim_anti_rug_refund(self, snapshot: AccountSnapshot) -> Outcome:
        return await self._guard("claim_anti_rug_refund", self._refund(snapshot))

    async def mint_exchange(self, snapshot: AccountSnapshot) -> Outcome:
        return await self._guard("mint_exchange", self._mint(snapshot))

    # -- implementation --------------------------------------------------

    async def _bid(
        self, snapshot: AccountSnapshot, amount_sol: float | Decimal | str
    ) -> Outcome:
        phase = self._phase(snapshot)
        if phase not in BIDDING_PHASES:
            raise ValidationError(
                ErrorKind.WRONG_PHASE, f"Bidding is closed ({phase.value})."
            )

        ticket = snapshot.ticket
        if ticket is None and phase is Phase.GRACE:
            raise ValidationError(
                ErrorKind.WRONG_PHASE,
                "The grace period only allows changing an existing bid.",
            )
        if ticket is not None and ticket.state is TicketState.WITHDRAWN:
            raise ValidationError(
                ErrorKind.TICKET_WITHDRAWN,
                "Your bid was withdrawn and cannot be adjusted.",
            )
        if ticket is not None and ticket.state is TicketState.PUNCHED:
            raise ValidationError(
                ErrorKind.TICKET_PUNCHED, "Punched tickets cannot be adjusted."
            )

        lamports = to_lamports(amount_sol)
        if lamports == 0:
            if ticket is None:
                raise ValidationError(
                    ErrorKind.INVALID_AMOUNT, "Bid amount must be positive."
                )
        else:
            self._check_price(snapshot, lamports)
        self._check_funds(snapshot, lamports)

        if ticket is None:
            instruction = ix.purchase_ticket(snapshot, lamports)
            message = "Bid inserted!"
        else:
            instruction = ix.adjust_ticket(snapshot, lamports)
            message = "Bid updated!"
        return await self._submit("place_or_update_bid", [instruction], message)

    async def _punch(self, snapshot: AccountSnapshot) -> Outcome:
        ticket = snapshot.ticket
        if ticket is None:
            raise ValidationError(ErrorKind.NO_TICKET, "No ticket to punch.")
        if ticket.state is TicketState.WITHDRAWN:
            raise ValidationError(
                ErrorKind.TICKET_WITHDRAWN, "Withdrawn tickets cannot be punched."
            )
        if ticket.state is TicketState.PUNCHED:
            raise ValidationError(ErrorKind.TICKET_PUNCHED, "Ticket already punched.")
        if not snapshot_is_winner(snapshot):
            raise ValidationError(
                ErrorKind.NOT_WINNER, "Only winning tickets can be punched."
            )

        instructions: List[Instruction] = []
        if snapshot.held_token_balance is None:
            instructions.append(ix.create_associated_token_account(snapshot))
        instructions.append(ix.punch_ticket(snapshot))
        return await self._submit("punch_ticket", instructions, "Ticket punched!")

    async def _withdraw(self, snapshot: AccountSnapshot) -> Outcome:
        ticket = snapshot.ticket
        if ticket is None:
            raise ValidationError(ErrorKind.NO_TICKET, "No bid to withdraw.")
        if ticket.state is TicketState.WITHDRAWN:
            raise ValidationError(ErrorKind.TICKET_WITHDRAWN, "Bid already withdrawn.")
        if ticket.state is TicketState.PUNCHED:
            raise ValidationError(
                ErrorKind.TICKET_PUNCHED, "Punched tickets cannot be withdrawn."
            )

        phase = self._phase(snapshot)
        if phase is Phase.LOTTERY_PENDING:
            raise ValidationError(
                ErrorKind.WRONG_PHASE,
                "Withdrawals are disallowed while the raffle runs.",
            )
        if phase in (Phase.POST_LOTTERY, Phase.LIVE) and snapshot_is_winner(snapshot):
            raise ValidationError(
                ErrorKind.WINNER_CANNOT_WITHDRAW, "Winning tickets cannot be withdrawn."
            )
        return await self._submit(
            "withdraw_ticket", [ix.adjust_ticket(snapshot, 0)], "Funds withdrawn."
        )

    async def _refund(self, snapshot: AccountSnapshot) -> Outcome:
        setting = snapshot.config.anti_rug_setting
        if setting is None:
            raise ValidationError(
                ErrorKind.NO_ANTI_RUG, "This raffle has no anti-rug policy."
            )
        ticket = snapshot.ticket
        if ticket is None:
            raise ValidationError(ErrorKind.NO_TICKET, "No ticket to refund.")
        if ticket.state is TicketState.WITHDRAWN:
            raise ValidationError(ErrorKind.TICKET_WITHDRAWN, "Bid already withdrawn.")
        if ticket.state is not TicketState.PUNCHED:
            raise ValidationError(
                ErrorKind.TICKET_NOT_PUNCHED,
                "You have a ticket but it has not been punched yet, "
                "so cannot be refunded.",
            )
        now = int(self.clock())
        if now < setting.self_destruct_date:
            raise ValidationError(
                ErrorKind.REFUND_NOT_YET,
                f"Refunds open at {setting.self_destruct_date} "
                f"(in {setting.self_destruct_date - now}s).",
            )
        return await self._submit(
            "claim_anti_rug_refund", [ix.receive_refund(snapshot)], "Refund received."
        )

    async def _mint(self, snapshot: AccountSnapshot) -> Outcome:
        action = "mint_exchange"
        phase = self._phase(snapshot)
        if phase is not Phase.LIVE:
            raise ValidationError(
                ErrorKind.WRONG_PHASE, f"Minting is not live ({phase.value})."
            )

        ticket = snapshot.ticket
        if is_fully_claimed(ticket, snapshot.held_token_balance):
            raise ValidationError(
                ErrorKind.ALREADY_CLAIMED, "Ticket already exchanged for a mint."
            )
        mint = snapshot.mint
        if mint is None or not mint.is_active:
            raise ValidationError(
                ErrorKind.MINT_UNAVAILABLE, "The candy machine is not active."
            )
        if mint.is_sold_out:
            raise ValidationError(ErrorKind.SOLD_OUT, "SOLD OUT!")
        if ticket is not None and ticket.state is TicketState.WITHDRAWN:
            raise ValidationError(
                ErrorKind.TICKET_WITHDRAWN, "Withdrawn tickets cannot mint."
            )
        if not snapshot_is_winner(snapshot):
            raise ValidationError(
                ErrorKind.NOT_WINNER, "Only winning tickets can mint."
            )

        signatures: List[str] = []
        if ticket is not None and ticket.state is TicketState.UNPUNCHED:
            punched = await self._punch(snapshot)
            if not punched.ok:
                return Outcome.failure(
                    action,
                    punched.kind or ErrorKind.UNKNOWN,
                    punched.message,
                    punched.signatures,
                )
            signatures.extend(punched.signatures)

        # Once the punch has landed every mint failure must still report it.
        punch_landed = bool(signatures)
        try:
            minted = await self._submit(
                action,
                [ix.mint_nft(snapshot, mint)],
                "Congratulations! Mint succeeded!",
            )
        except Exception as e:
            if not punch_landed:
                raise
            return self._failure(action, e, signatures, partial=True)
        signatures.extend(minted.signatures)
        if not minted.ok:
            return Outcome.failure(
                action,
                minted.kind or ErrorKind.UNKNOWN,
                minted.message,
                signatures,
                partial=punch_landed,
            )
        return Outcome.success(action, signatures, minted.message)

    # -- helpers ---------------------------------------------------------

    def _phase(self, snapshot: AccountSnapshot) -> Phase:
        return resolve_phase(
            snapshot.config, snapshot.runtime, snapshot.mint_go_live, int(self.clock())
        )

    def _check_price(self, snapshot: AccountSnapshot, lamports: int) -> None:
        cfg = snapshot.config
        if cfg.price_range_start is not None and lamports < cfg.price_range_start:
            raise ValidationError(
                ErrorKind.INVALID_AMOUNT, "Bid below the price range."
            )
        if cfg.price_range_end is not None and lamports > cfg.price_range_end:
            raise ValidationError(
                ErrorKind.INVALID_AMOUNT, "Bid above the price range."
            )
        if cfg.tick_size and cfg.price_range_start is not None:
            if (lamports - cfg.price_range_start) % cfg.tick_size:
                raise ValidationError(
                    ErrorKind.INVALID_AMOUNT, "Bid is not on a price tick."
                )

    def _check_funds(self, snapshot: AccountSnapshot, lamports: int) -> None:
        if snapshot.wallet_lamports is None:
            log.debug("Wallet balance unknown; skipping funds check.")
            return
        existing = snapshot.ticket.amount if snapshot.ticket is not None else 0
        fee = snapshot.config.fee or 0
        projected = (
            snapshot.wallet_lamports + existing - (lamports + fee + self.safety_margin)
        )
        if projected < 0:
            raise ValidationError(
                ErrorKind.INSUFFICIENT_FUNDS,
                f"Insufficient funds: short by "
                f"{-projected / LAMPORTS_PER_SOL:.4f} SOL.",
            )

    async def _submit(
        self, action: str, instructions: Sequence[Instruction], message: str
    ) -> Outcome:
        log.info("Submitting %s (%d instruction(s))", action, len(instructions))
        signature = await self.sender.send(instructions)
        result = await self.watcher.wait(signature, self.timeout_ms, self.commitment)
        if result.ok:
            log.info("%s confirmed: %s", action, signature)
            return Outcome.success(action, [signature], message)
        if result.status is ConfirmationStatus.TIMEOUT:
            c = classify(None, None)
        else:
            c = classify(result.program_error_code, result.message)
        log.warning("%s failed: %s (%s)", action, c.kind.value, c.message)
        return Outcome.failure(action, c.kind, c.message, [signature])

    async def _guard(self, action: str, operation: Awaitable[Outcome]) -> Outcome:
        try:
            return await operation
        except Exception as e:
            return self._failure(action, e)

    def _failure(
        self,
        action: str,
        exc: Exception,
        signatures: Sequence[str] = (),
        partial: bool = False,
    ) -> Outcome:
        if isinstance(exc, ValidationError):
            log.info("%s rejected: %s", action, exc)
            return Outcome.failure(
                action, exc.kind, str(exc), signatures, partial=partial
            )
        if isinstance(exc, httpx.HTTPError):
            log.warning("%s network error: %s", action, exc)
            return Outcome.failure(
                action,
                ErrorKind.NETWORK_ERROR,
                str(exc) or "Network error.",
                signatures,
                partial=partial,
            )
        c = classify_exception(exc)
        log.warning("%s failed: %s (%s)", action, c.kind.value, c.message)
        return Outcome.failure(action, c.kind, c.message, signatures, partial=partial)
