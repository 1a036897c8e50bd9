"""Handicap math: score differentials, Equitable Stroke Control, course handicaps
and the Handicap Index built from a player's most recent posted rounds."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

STANDARD_SLOPE = 113
DEFAULT_PAR = 72
HOLES_PER_ROUND = 18
MIN_ROUNDS_FOR_INDEX = 5
MAX_RECENT_ROUNDS = 20
COURSE_RATING_RANGE = (60, 80)
SLOPE_RATING_RANGE = (55, 155)

# (max retained rounds, differentials used)
DIFFERENTIALS_USED = [
    (6, 1),
    (8, 2),
    (11, 3),
    (14, 4),
    (16, 5),
    (18, 6),
    (19, 7),
]

# (max course handicap, per-hole cap); None means double bogey
ESC_CAPS = [
    (9, None),
    (19, 7),
    (29, 8),
    (39, 9),
]
ESC_CAP_MAX = 10


class InvalidInputError(Exception):
    pass


@dataclass(frozen=True)
class ScoreDifferentialRecord:
    adjusted_gross_score: int
    course_rating: float
    slope_rating: float
    played_date: date

    @property
    def differential(self) -> float:
        return compute_score_differential(
            self.adjusted_gross_score, self.course_rating, self.slope_rating
        )


@dataclass(frozen=True)
class RoundRecord:
    round_id: str
    player_id: str
    played_date: date
    holes: list[tuple[int, int]]
    course_rating: float | None
    slope_rating: float | None
    course_id: str | None = None
    tee_box_id: str | None = None
    event_id: str | None = None
    course_par: int | None = None
    gross_score: int | None = None

    @property
    def hole_strokes(self) -> list[int]:
        return [strokes for strokes, _ in self.holes]

    @property
    def hole_pars(self) -> list[int]:
        return [par for _, par in self.holes]

    @property
    def total_strokes(self) -> int:
        if self.gross_score is not None:
            return self.gross_score
        return sum(self.hole_strokes)


@dataclass(frozen=True)
class HandicapResult:
    handicap_index: float
    number_of_scores_used: int
    scores_used: list[ScoreDifferentialRecord] = field(default_factory=list)
    average_differential: float = 0.0


def round_half_up(value: float, places: int = 0) -> float:
    """Round with halves going away from zero, on the decimal value as written."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def compute_score_differential(
    adjusted_gross_score: float, course_rating: float, slope_rating: float
) -> float:
    differential = (STANDARD_SLOPE / slope_rating) * (adjusted_gross_score - course_rating)
    return round_half_up(differential, 1)


def esc_cap_for(course_handicap: int) -> int | None:
    for upper, cap in ESC_CAPS:
        if course_handicap <= upper:
            return cap
    return ESC_CAP_MAX


def compute_adjusted_gross_score(
    hole_strokes: Sequence[int], hole_pars: Sequence[int], course_handicap: int
) -> int:
    """Sum the round after capping every hole under Equitable Stroke Control.

    Course handicaps of 9 or less cap each hole at double bogey, higher
    handicaps use a flat per-hole maximum of 7 through 10.
    """
    if len(hole_strokes) != len(hole_pars):
        raise InvalidInputError(
            f"Hole scores and pars must have the same length "
            f"({len(hole_strokes)} != {len(hole_pars)})"
        )
    flat_cap = esc_cap_for(course_handicap)
    total = 0
    for strokes, par in zip(hole_strokes, hole_pars):
        cap = par + 2 if flat_cap is None else flat_cap
        total += min(strokes, cap)
    return total


def compute_course_handicap(
    handicap_index: float,
    slope_rating: float,
    course_rating: float,
    par: int = DEFAULT_PAR,
) -> int:
    course_handicap = handicap_index * (slope_rating / STANDARD_SLOPE) + (course_rating - par)
    return int(round_half_up(course_handicap))


def compute_net_score(gross_score: int, course_handicap: int | None) -> int:
    return gross_score - (course_handicap or 0)


def differentials_to_use(round_count: int) -> int:
    for upper, used in DIFFERENTIALS_USED:
        if round_count <= upper:
            return used
    return 8


def compute_handicap_index(
    records: Iterable[ScoreDifferentialRecord],
) -> HandicapResult | None:
    """Average the lowest differentials among the most recent 20 rounds.

    Returns None when fewer than five rounds are available. The average is
    not scaled by the WHS 0.96 factor.
    """
    records = list(records)
    if len(records) < MIN_ROUNDS_FOR_INDEX:
        return None

    recent = sorted(records, key=lambda record: record.played_date, reverse=True)
    recent = recent[:MAX_RECENT_ROUNDS]
    ranked = sorted(
        ((record.differential, record) for record in recent),
        key=lambda item: item[0],
    )
    used = differentials_to_use(len(recent))
    best = ranked[:used]
    average = sum(differential for differential, _ in best) / used
    return HandicapResult(
        handicap_index=round_half_up(average, 1),
        number_of_scores_used=used,
        scores_used=[record for _, record in best],
        average_differential=average,
    )


def is_round_eligible_for_handicap(
    number_of_holes: int,
    course_rating: float | None,
    slope_rating: float | None,
) -> bool:
    if number_of_holes != HOLES_PER_ROUND:
        return False
    if not course_rating or not slope_rating:
        return False
    low, high = COURSE_RATING_RANGE
    if course_rating < low or course_rating > high:
        return False
    low, high = SLOPE_RATING_RANGE
    if slope_rating < low or slope_rating > high:
        return False
    return True


def format_handicap_index(handicap_index: float | None) -> str:
    if handicap_index is None:
        return "N/A"
    if handicap_index == 0:
        return "Scratch"
    if handicap_index > 0:
        return f"+{handicap_index:.1f}"
    return f"{abs(handicap_index):.1f}"
