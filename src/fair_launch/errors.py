from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


class FairLaunchError(RuntimeError):
    """Base class for every failure raised by this package."""


class ValidationError(FairLaunchError):
    """A precondition checked locally, before anything is sent."""

    def __init__(self, kind: "ErrorKind", message: str) -> None:
        super().__init__(message)
        self.kind = kind


class RpcError(FairLaunchError):
    """Transport or JSON-RPC level failure; nothing reached the chain."""


class ProgramRevert(FairLaunchError):
    """The on-chain program rejected the transaction."""

    def __init__(self, message: str | None, code: int | None = None) -> None:
        super().__init__(message or "")
        self.code = code
        self.message = message


class AccountDecodeError(FairLaunchError):
    pass


class LotteryIndexError(FairLaunchError):
    pass


class ErrorCategory(enum.Enum):
    VALIDATION = "validation"
    PROGRAM = "program"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ErrorKind(enum.Enum):
    # local precondition failures
    INSUFFICIENT_FUNDS = "insufficient_funds"
    WRONG_PHASE = "wrong_phase"
    NO_TICKET = "no_ticket"
    TICKET_WITHDRAWN = "ticket_withdrawn"
    TICKET_PUNCHED = "ticket_punched"
    TICKET_NOT_PUNCHED = "ticket_not_punched"
    NOT_WINNER = "not_winner"
    WINNER_CANNOT_WITHDRAW = "winner_cannot_withdraw"
    INVALID_AMOUNT = "invalid_amount"
    NO_ANTI_RUG = "no_anti_rug"
    REFUND_NOT_YET = "refund_not_yet"
    MINT_UNAVAILABLE = "mint_unavailable"
    MISSING_ACCOUNT = "missing_account"
    ALREADY_CLAIMED = "already_claimed"
    # program reverts
    SOLD_OUT = "sold_out"
    NOT_STARTED_YET = "not_started_yet"
    PROGRAM_INSUFFICIENT_FUNDS = "program_insufficient_funds"
    PROGRAM_ERROR = "program_error"
    # transport
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

    @property
    def category(self) -> ErrorCategory:
        if self in _PROGRAM_KINDS:
            return ErrorCategory.PROGRAM
        if self is ErrorKind.NETWORK_ERROR:
            return ErrorCategory.NETWORK
        if self is ErrorKind.TIMEOUT:
            return ErrorCategory.TIMEOUT
        if self is ErrorKind.UNKNOWN:
            return ErrorCategory.UNKNOWN
        return ErrorCategory.VALIDATION

    @property
    def retry_safe(self) -> bool:
        return self.category is ErrorCategory.NETWORK

    @property
    def refresh_required(self) -> bool:
        """Cached phase/ticket state can no longer be trusted after this failure."""
        return self in (
            ErrorKind.SOLD_OUT,
            ErrorKind.ALREADY_CLAIMED,
            ErrorKind.TIMEOUT,
        )


_PROGRAM_KINDS = frozenset(
    {
        ErrorKind.SOLD_OUT,
        ErrorKind.NOT_STARTED_YET,
        ErrorKind.PROGRAM_INSUFFICIENT_FUNDS,
        ErrorKind.PROGRAM_ERROR,
    }
)


# Candy machine custom error codes (Anchor offsets them from 300).
PROGRAM_ERROR_CODES: Dict[int, Tuple[str, ErrorKind]] = {
    300: ("IncorrectOwner", ErrorKind.PROGRAM_ERROR),
    301: ("Uninitialized", ErrorKind.PROGRAM_ERROR),
    302: ("MintMismatch", ErrorKind.PROGRAM_ERROR),
    303: ("IndexGreaterThanLength", ErrorKind.PROGRAM_ERROR),
    304: ("ConfigMustHaveAtleastOneEntry", ErrorKind.PROGRAM_ERROR),
    305: ("NumericalOverflowError", ErrorKind.PROGRAM_ERROR),
    306: ("TooManyCreators", ErrorKind.PROGRAM_ERROR),
    307: ("UuidMustBeExactly6Length", ErrorKind.PROGRAM_ERROR),
    308: ("NotEnoughTokens", ErrorKind.PROGRAM_INSUFFICIENT_FUNDS),
    309: ("NotEnoughSOL", ErrorKind.PROGRAM_INSUFFICIENT_FUNDS),
    310: ("TokenTransferFailed", ErrorKind.PROGRAM_ERROR),
    311: ("CandyMachineEmpty", ErrorKind.SOLD_OUT),
    312: ("CandyMachineNotLiveYet", ErrorKind.NOT_STARTED_YET),
    313: ("ConfigLineMismatch", ErrorKind.PROGRAM_ERROR),
}

# Hex renderings of the codes above as they appear in raw simulation logs.
MESSAGE_MARKERS: Tuple[Tuple[str, ErrorKind], ...] = (
    ("0x137", ErrorKind.SOLD_OUT),
    ("0x138", ErrorKind.NOT_STARTED_YET),
    ("0x135", ErrorKind.PROGRAM_INSUFFICIENT_FUNDS),
    ("insufficient funds", ErrorKind.PROGRAM_INSUFFICIENT_FUNDS),
)

USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.SOLD_OUT: "SOLD OUT!",
    ErrorKind.NOT_STARTED_YET: "Minting period hasn't started yet.",
    ErrorKind.PROGRAM_INSUFFICIENT_FUNDS: (
        "Insufficient funds. Please fund your wallet."
    ),
    ErrorKind.TIMEOUT: "Transaction Timeout! Please check status before trying again.",
}


@dataclass(frozen=True)
class Classification:
    kind: ErrorKind
    message: str
    code: Optional[int] = None
    name: Optional[str] = None


def classify(code: int | None = None, message: str | None = None) -> Classification:
    """Map a raw failure (structured code and/or log message) to an ErrorKind.

    Never raises: unseen codes and unrecognised text come back as UNKNOWN
    with the raw message preserved for display.
    """
    if code is not None:
        entry = PROGRAM_ERROR_CODES.get(code)
        if entry is None:
            return Classification(
                ErrorKind.UNKNOWN, message or f"Program error code {code}", code=code
            )
        name, kind = entry
        return Classification(
            kind, USER_MESSAGES.get(kind, message or name), code=code, name=name
        )

    if not message:
        return Classification(ErrorKind.TIMEOUT, USER_MESSAGES[ErrorKind.TIMEOUT])

    lower = message.lower()
    for marker, kind in MESSAGE_MARKERS:
        if marker in lower:
            return Classification(kind, USER_MESSAGES[kind])

    return Classification(ErrorKind.UNKNOWN, message)


def classify_exception(exc: BaseException) -> Classification:
    if isinstance(exc, ValidationError):
        return Classification(exc.kind, str(exc))
    if isinstance(exc, ProgramRevert):
        return classify(exc.code, exc.message)
    if isinstance(exc, RpcError):
        return Classification(
            ErrorKind.NETWORK_ERROR, str(exc) or "RPC request failed."
        )
    return classify(None, str(exc) or None)


def extract_custom_code(err: object) -> Optional[int]:
    """Pull the custom program error out of a transaction status `err` value.

    Shape: {"InstructionError": [index, {"Custom": 311}]}
    """
    if not isinstance(err, dict):
        return None
    ix_err = err.get("InstructionError")
    if not isinstance(ix_err, (list, tuple)) or len(ix_err) != 2:
        return None
    detail = ix_err[1]
    if isinstance(detail, dict) and isinstance(detail.get("Custom"), int):
        return detail["Custom"]
    return None
