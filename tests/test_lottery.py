import pytest

from fair_launch.errors import LotteryIndexError
from fair_launch.lottery import bit_location, bitmask_size, is_winner
from fair_launch.project_constants import LOTTERY_HEADER_SIZE

from helpers import lottery_bytes


def test_header_is_41_bytes():
    assert LOTTERY_HEADER_SIZE == 41
    assert bitmask_size(16) == 43
    assert bitmask_size(17) == 44


def test_sequence_zero_is_msb_of_first_flag_byte():
    assert bit_location(0) == (41, 7)
    assert is_winner(lottery_bytes([0b10000000]), 0, 0, True)
    assert not is_winner(lottery_bytes([0b01111111]), 0, 0, True)


def test_scenario_sequence_nine():
    assert bit_location(9) == (42, 6)
    assert is_winner(lottery_bytes([0, 0b01000000]), 9, 0, True, token_count=16)
    assert not is_winner(lottery_bytes([0, 0b10111111]), 9, 0, True, token_count=16)


def test_held_balance_short_circuits():
    assert is_winner(None, 3, 5, False)
    assert is_winner(b"", None, 5, False)


@pytest.mark.parametrize(
    "bitmask, sequence, resolved",
    [
        (None, 0, True),
        (b"", 0, True),
        (lottery_bytes([0xFF]), None, True),
        (lottery_bytes([0xFF]), 0, False),
    ],
)
def test_unresolvable_is_not_a_winner(bitmask, sequence, resolved):
    assert is_winner(bitmask, sequence, 0, resolved) is False
    assert is_winner(bitmask, sequence, None, resolved) is False


def test_bit_locations_are_unique_and_full_bytes_win():
    seen = set()
    for seq in range(64):
        loc = bit_location(seq)
        assert loc not in seen
        seen.add(loc)
    assert len(seen) == 64

    mask = lottery_bytes([0xFF] * 8)
    for seq in range(64):
        assert is_winner(mask, seq, 0, True, token_count=64)


def test_only_own_bit_counts():
    mask = lottery_bytes([0b00100000, 0])
    winners = [seq for seq in range(16) if is_winner(mask, seq, 0, True)]
    assert winners == [2]


def test_out_of_range_sequence_raises():
    mask = lottery_bytes([0xFF, 0xFF])
    with pytest.raises(LotteryIndexError):
        is_winner(mask, 16, 0, True)
    # Extra trailing bytes are ignored when the token count says they are not flags.
    with pytest.raises(LotteryIndexError):
        is_winner(lottery_bytes([0xFF] * 4), 16, 0, True, token_count=16)
    with pytest.raises(LotteryIndexError):
        bit_location(-1)


def test_padding_bits_past_token_count_raise():
    # 10 tokens occupy two flag bytes; bits 10..15 are padding.
    mask = lottery_bytes([0xFF, 0xFF])
    assert is_winner(mask, 9, 0, True, token_count=10)
    for seq in (10, 12, 15):
        with pytest.raises(LotteryIndexError):
            is_winner(mask, seq, 0, True, token_count=10)


def test_is_pure():
    mask = lottery_bytes([0b01010101])
    results = {is_winner(mask, 1, 0, True) for _ in range(5)}
    assert results == {True}
