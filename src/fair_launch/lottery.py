from __future__ import annotations

from typing import Optional, Tuple

from .errors import LotteryIndexError
from .project_constants import LOTTERY_HEADER_SIZE


def bitmask_size(token_count: int) -> int:
    """Total lottery account size for a raffle of `token_count` tokens."""
    return LOTTERY_HEADER_SIZE + (token_count + 7) // 8


def bit_location(sequence: int) -> Tuple[int, int]:
    """(byte index, bit position) of a ticket's flag. Bits are packed MSB first."""
    if sequence < 0:
        raise LotteryIndexError(f"Negative ticket sequence {sequence}.")
    return LOTTERY_HEADER_SIZE + sequence // 8, 7 - (sequence % 8)


def is_winner(
    bitmask: Optional[bytes],
    sequence: Optional[int],
    held_token_balance: Optional[int],
    phase_three_started: bool,
    token_count: Optional[int] = None,
) -> bool:
    # Holding the raffle token already proves the ticket won.
    if held_token_balance is not None and held_token_balance > 0:
        return True
    if not bitmask or sequence is None or not phase_three_started:
        return False

    if token_count is not None and sequence >= token_count:
        raise LotteryIndexError(
            f"Ticket sequence {sequence} is beyond the {token_count} raffle tokens."
        )
    byte_index, position = bit_location(sequence)
    limit = len(bitmask)
    if token_count is not None:
        limit = min(limit, bitmask_size(token_count))
    if byte_index >= limit:
        raise LotteryIndexError(
            f"Ticket sequence {sequence} maps to byte {byte_index}, "
            f"outside the lottery flags (size {limit})."
        )
    return (bitmask[byte_index] & (1 << position)) != 0
