from __future__ import annotations

import enum
from typing import Dict, Optional

from .accounts import RaffleConfig, RaffleRuntime


class Phase(enum.Enum):
    ANTICIPATION = "anticipation"
    BIDDING = "bidding"
    GRACE = "grace"
    LOTTERY_PENDING = "lottery_pending"
    POST_LOTTERY = "post_lottery"
    LIVE = "live"
    # resolve_phase never returns this: its branches cover every input.
    UNKNOWN = "unknown"


# POST_LOTTERY and LIVE share a rank: which one applies depends on the mint.
PHASE_ORDER: Dict[Phase, int] = {
    Phase.ANTICIPATION: 0,
    Phase.BIDDING: 1,
    Phase.GRACE: 2,
    Phase.LOTTERY_PENDING: 3,
    Phase.POST_LOTTERY: 4,
    Phase.LIVE: 4,
}

BIDDING_PHASES = frozenset({Phase.BIDDING, Phase.GRACE})
RESOLUTION_PHASES = frozenset({Phase.LOTTERY_PENDING, Phase.POST_LOTTERY, Phase.LIVE})


def resolve_phase(
    config: Optional[RaffleConfig],
    runtime: Optional[RaffleRuntime],
    mint_go_live: Optional[int],
    now: int,
) -> Phase:
    """Map a raffle snapshot and the current unix time to a Phase.

    Branches are checked in order and the first match wins. A missing
    timestamp never matches its branch.
    """
    phase_one_start = config.phase_one_start if config else None
    phase_one_end = config.phase_one_end if config else None
    phase_two_end = config.phase_two_end if config else None
    phase_three_started = runtime.phase_three_started if runtime else False

    if phase_one_start is not None and now < phase_one_start:
        return Phase.ANTICIPATION
    if phase_one_end is not None and now <= phase_one_end:
        return Phase.BIDDING
    if phase_two_end is not None and now <= phase_two_end:
        return Phase.GRACE
    if not phase_three_started:
        return Phase.LOTTERY_PENDING
    if mint_go_live is not None and now > mint_go_live:
        return Phase.LIVE
    return Phase.POST_LOTTERY


def phase_deadline(
    phase: Phase, config: Optional[RaffleConfig], mint_go_live: Optional[int]
) -> Optional[int]:
    """Timestamp the given phase counts down to, if known."""
    if config is None:
        return None
    if phase is Phase.ANTICIPATION:
        return config.phase_one_start
    if phase is Phase.BIDDING:
        return config.phase_one_end
    if phase is Phase.GRACE:
        return config.phase_two_end
    if phase is Phase.LOTTERY_PENDING:
        if config.phase_two_end is None or config.lottery_duration is None:
            return None
        return config.phase_two_end + config.lottery_duration
    if phase is Phase.POST_LOTTERY:
        return mint_go_live if mint_go_live is not None else config.phase_two_end
    if phase is Phase.LIVE:
        return mint_go_live
    return None
