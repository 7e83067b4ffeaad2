from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .errors import RpcError, extract_custom_code
from .project_constants import DEFAULT_POLL_INTERVAL_S
from .rpc import RpcClient

log = logging.getLogger(__name__)

_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}


class ConfirmationStatus(enum.Enum):
    CONFIRMED = "confirmed"
    PROGRAM_ERROR = "program_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ConfirmationResult:
    signature: str
    status: ConfirmationStatus
    slot: Optional[int] = None
    commitment: Optional[str] = None
    program_error_code: Optional[int] = None
    message: Optional[str] = None

    @property
    def finalized(self) -> bool:
        """A terminal status was observed (with or without a program error)."""
        return self.status is not ConfirmationStatus.TIMEOUT

    @property
    def ok(self) -> bool:
        return self.status is ConfirmationStatus.CONFIRMED


class ConfirmationWatcher:
    """Polls signature status until it is terminal or the deadline passes.

    Timing out says nothing about the transaction itself: it may still land,
    so callers must refresh state before deciding to resubmit.
    """

    def __init__(
        self,
        rpc: RpcClient,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.rpc = rpc
        self.poll_interval_s = poll_interval_s
        self.clock = clock
        self.sleep = sleep

    async def wait(
        self, signature: str, timeout_ms: int, commitment: str = "confirmed"
    ) -> ConfirmationResult:
        if commitment not in _COMMITMENT_RANK:
            raise ValueError(f"Unknown commitment level {commitment!r}")
        wanted = _COMMITMENT_RANK[commitment]
        deadline = self.clock() + timeout_ms / 1000.0

        while True:
            try:
                statuses = await self.rpc.get_signature_statuses([signature])
                status = statuses[0] if statuses else None
            except RpcError as e:
                log.warning("Error polling %s: %s", signature, e)
                status = None

            if status is not None:
                result = self._terminal(signature, status, wanted)
                if result is not None:
                    log.debug("%s: %s", signature, result.status.value)
                    return result

            remaining = deadline - self.clock()
            if remaining <= 0:
                log.info("Timed out waiting for %s after %d ms", signature, timeout_ms)
                return ConfirmationResult(signature, ConfirmationStatus.TIMEOUT)
            await self.sleep(min(self.poll_interval_s, remaining))

    @staticmethod
    def _terminal(
        signature: str, status: dict, wanted: int
    ) -> Optional[ConfirmationResult]:
        slot = status.get("slot")
        reached = status.get("confirmationStatus")
        err = status.get("err")
        if err is not None:
            return ConfirmationResult(
                signature,
                ConfirmationStatus.PROGRAM_ERROR,
                slot=slot,
                commitment=reached,
                program_error_code=extract_custom_code(err),
                message=str(err),
            )
        if reached is not None and _COMMITMENT_RANK.get(reached, -1) >= wanted:
            return ConfirmationResult(
                signature, ConfirmationStatus.CONFIRMED, slot=slot, commitment=reached
            )
        return None
