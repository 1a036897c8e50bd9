from datetime import date, timedelta

import pytest

from league.handicap import (
    InvalidInputError,
    ScoreDifferentialRecord,
    compute_adjusted_gross_score,
    compute_course_handicap,
    compute_handicap_index,
    compute_net_score,
    compute_score_differential,
    differentials_to_use,
    esc_cap_for,
    format_handicap_index,
    is_round_eligible_for_handicap,
    round_half_up,
)

PARS = [4] * 18


def _record(adjusted: int, played: date, rating: float = 72.0, slope: float = 113) -> ScoreDifferentialRecord:
    return ScoreDifferentialRecord(adjusted, rating, slope, played)


def test_round_half_up_moves_halves_away_from_zero():
    assert round_half_up(2.25, 1) == 2.3
    assert round_half_up(0.05, 1) == 0.1
    assert round_half_up(2.5) == 3.0
    assert round_half_up(-2.5) == -3.0
    assert round_half_up(-0.04, 1) == -0.0


def test_score_differential_at_standard_slope():
    assert compute_score_differential(72, 72.0, 113) == 0.0
    assert compute_score_differential(85, 72.0, 113) == 13.0
    assert compute_score_differential(70, 72.0, 113) == -2.0


def test_score_differential_scales_by_slope():
    # 113 / 124 * 18.8 = 17.13
    assert compute_score_differential(90, 71.2, 124) == 17.1


@pytest.mark.parametrize(
    ("course_handicap", "cap"),
    [(-3, None), (0, None), (9, None), (10, 7), (19, 7), (20, 8), (29, 8), (30, 9), (39, 9), (40, 10), (54, 10)],
)
def test_esc_cap_brackets(course_handicap, cap):
    assert esc_cap_for(course_handicap) == cap


def test_adjusted_gross_caps_at_double_bogey_for_low_handicaps():
    strokes = [9] + [4] * 17
    assert compute_adjusted_gross_score(strokes, PARS, 5) == 6 + 68


@pytest.mark.parametrize(("course_handicap", "cap"), [(15, 7), (25, 8), (35, 9), (45, 10)])
def test_adjusted_gross_uses_flat_caps(course_handicap, cap):
    strokes = [12] + [4] * 17
    assert compute_adjusted_gross_score(strokes, PARS, course_handicap) == cap + 68


def test_adjusted_gross_leaves_capped_rounds_unchanged():
    strokes = [5, 6, 4, 3, 4, 5, 6, 4, 4, 5, 4, 4, 3, 6, 5, 4, 4, 5]
    once = compute_adjusted_gross_score(strokes, PARS, 8)
    assert once == sum(strokes)

    capped = [min(stroke, 6) for stroke in [8, 7] + strokes[2:]]
    assert compute_adjusted_gross_score(capped, PARS, 8) == sum(capped)


def test_adjusted_gross_rejects_mismatched_lengths():
    with pytest.raises(InvalidInputError):
        compute_adjusted_gross_score([4] * 18, [4] * 9, 10)


def test_course_handicap_examples():
    assert compute_course_handicap(13.0, 113, 72.0, 72) == 13
    assert compute_course_handicap(10.0, 130, 71.5, 72) == 11
    assert compute_course_handicap(0.0, 113, 66.0, 72) == -6


def test_course_handicap_rounds_halves_away_from_zero():
    assert compute_course_handicap(0.0, 113, 72.5, 72) == 1
    assert compute_course_handicap(0.0, 113, 71.5, 72) == -1


def test_course_handicap_is_not_clamped():
    # 40 * 155 / 113 + 8 = 62.87
    assert compute_course_handicap(40.0, 155, 80.0, 72) == 63


def test_net_score_treats_missing_handicap_as_scratch():
    assert compute_net_score(85, 13) == 72
    assert compute_net_score(85, None) == 85
    assert compute_net_score(70, -2) == 72


@pytest.mark.parametrize(
    ("rounds", "used"),
    [(5, 1), (6, 1), (7, 2), (8, 2), (9, 3), (11, 3), (12, 4), (14, 4), (15, 5), (16, 5),
     (17, 6), (18, 6), (19, 7), (20, 8), (25, 8)],
)
def test_differentials_used_table(rounds, used):
    assert differentials_to_use(rounds) == used


def test_index_needs_five_rounds():
    start = date(2024, 4, 1)
    records = [_record(85 + i, start + timedelta(days=i)) for i in range(4)]
    assert compute_handicap_index(records) is None
    assert compute_handicap_index([]) is None

    records.append(_record(83, start + timedelta(days=4)))
    result = compute_handicap_index(records)
    assert result is not None
    assert result.handicap_index == 11.0
    assert result.number_of_scores_used == 1
    assert result.scores_used[0].adjusted_gross_score == 83


def test_index_uses_only_most_recent_twenty_rounds():
    start = date(2024, 1, 1)
    old_rounds = [_record(72, start + timedelta(days=i)) for i in range(5)]
    recent = [_record(80 + i, start + timedelta(days=10 + i)) for i in range(20)]

    result = compute_handicap_index(old_rounds + recent)

    # best eight of differentials 8..27
    assert result.number_of_scores_used == 8
    assert result.handicap_index == 11.5
    assert result.average_differential == 11.5
    assert sorted(record.adjusted_gross_score for record in result.scores_used) == list(range(80, 88))


def test_index_does_not_apply_bonus_for_excellence():
    start = date(2024, 1, 1)
    records = [_record(82, start + timedelta(days=i)) for i in range(20)]
    assert compute_handicap_index(records).handicap_index == 10.0


def test_index_is_order_independent():
    start = date(2024, 1, 1)
    records = [_record(score, start + timedelta(days=i)) for i, score in enumerate([90, 88, 85, 92, 87, 95, 84])]
    forward = compute_handicap_index(records)
    backward = compute_handicap_index(list(reversed(records)))
    assert forward.handicap_index == backward.handicap_index == 12.5
    assert forward.number_of_scores_used == 2


@pytest.mark.parametrize(
    ("holes", "rating", "slope", "eligible"),
    [
        (18, 72.0, 113, True),
        (18, 60, 55, True),
        (18, 80, 155, True),
        (9, 72.0, 113, False),
        (18, None, 113, False),
        (18, 72.0, None, False),
        (18, 59.9, 113, False),
        (18, 80.1, 113, False),
        (18, 72.0, 54, False),
        (18, 72.0, 156, False),
    ],
)
def test_round_eligibility(holes, rating, slope, eligible):
    assert is_round_eligible_for_handicap(holes, rating, slope) is eligible


def test_format_handicap_index():
    assert format_handicap_index(None) == "N/A"
    assert format_handicap_index(0) == "Scratch"
    assert format_handicap_index(12.4) == "+12.4"
    assert format_handicap_index(-1.5) == "1.5"
