import pytest

from fair_launch.accounts import RaffleConfig, RaffleRuntime
from fair_launch.phase import PHASE_ORDER, Phase, phase_deadline, resolve_phase

from helpers import (
    GO_LIVE,
    LOTTERY_DURATION,
    PHASE_ONE_END,
    PHASE_ONE_START,
    PHASE_TWO_END,
    make_config,
)

CONFIG = make_config()
PENDING = RaffleRuntime(phase_three_started=False)
RESOLVED = RaffleRuntime(phase_three_started=True)


@pytest.mark.parametrize(
    "now, runtime, go_live, expected",
    [
        (PHASE_ONE_START - 1, PENDING, None, Phase.ANTICIPATION),
        (PHASE_ONE_START, PENDING, None, Phase.BIDDING),
        (PHASE_ONE_END, PENDING, None, Phase.BIDDING),
        (PHASE_ONE_END + 1, PENDING, None, Phase.GRACE),
        (PHASE_TWO_END, PENDING, None, Phase.GRACE),
        (PHASE_TWO_END + 1, PENDING, None, Phase.LOTTERY_PENDING),
        (10**9, PENDING, GO_LIVE, Phase.LOTTERY_PENDING),
        (PHASE_TWO_END + 1, RESOLVED, None, Phase.POST_LOTTERY),
        (GO_LIVE, RESOLVED, GO_LIVE, Phase.POST_LOTTERY),
        (GO_LIVE + 1, RESOLVED, GO_LIVE, Phase.LIVE),
    ],
)
def test_resolve_phase_boundaries(now, runtime, go_live, expected):
    assert resolve_phase(CONFIG, runtime, go_live, now) is expected


def test_grace_checked_before_resolution_flag():
    # Inside the grace window the phase is GRACE whatever phase_three_started says.
    for now in (PHASE_ONE_END + 1, PHASE_TWO_END):
        assert resolve_phase(CONFIG, PENDING, None, now) is Phase.GRACE
        assert resolve_phase(CONFIG, RESOLVED, GO_LIVE, now) is Phase.GRACE


def test_bidding_window_wins_even_when_mint_is_live():
    assert resolve_phase(CONFIG, RESOLVED, 0, PHASE_ONE_END) is Phase.BIDDING


def test_missing_timestamps_never_match():
    empty = RaffleConfig()
    assert resolve_phase(empty, PENDING, None, 0) is Phase.LOTTERY_PENDING
    assert resolve_phase(empty, RESOLVED, None, 0) is Phase.POST_LOTTERY
    assert resolve_phase(None, None, None, 0) is Phase.LOTTERY_PENDING

    no_start = make_config(phase_one_start=None)
    assert resolve_phase(no_start, PENDING, None, 0) is Phase.BIDDING


@pytest.mark.parametrize("runtime", [PENDING, RESOLVED])
@pytest.mark.parametrize("go_live", [None, GO_LIVE, PHASE_ONE_START])
def test_phase_is_monotonic_in_time(runtime, go_live):
    times = range(0, GO_LIVE + 2_000, 50)
    ranks = [PHASE_ORDER[resolve_phase(CONFIG, runtime, go_live, t)] for t in times]
    assert ranks == sorted(ranks)


def test_phase_deadlines():
    assert phase_deadline(Phase.ANTICIPATION, CONFIG, None) == PHASE_ONE_START
    assert phase_deadline(Phase.BIDDING, CONFIG, None) == PHASE_ONE_END
    assert phase_deadline(Phase.GRACE, CONFIG, None) == PHASE_TWO_END
    assert phase_deadline(Phase.LOTTERY_PENDING, CONFIG, None) == PHASE_TWO_END + LOTTERY_DURATION
    assert phase_deadline(Phase.POST_LOTTERY, CONFIG, None) == PHASE_TWO_END
    assert phase_deadline(Phase.POST_LOTTERY, CONFIG, GO_LIVE) == GO_LIVE
    assert phase_deadline(Phase.LIVE, CONFIG, GO_LIVE) == GO_LIVE
    assert phase_deadline(Phase.UNKNOWN, CONFIG, GO_LIVE) is None
    assert phase_deadline(Phase.LOTTERY_PENDING, make_config(lottery_duration=None), None) is None
