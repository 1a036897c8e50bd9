"""Posting rounds for handicap and keeping each player's index current."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterator, Optional

from league.db import UpstreamFetchError
from league.handicap import (
    DEFAULT_PAR,
    HandicapResult,
    RoundRecord,
    compute_adjusted_gross_score,
    compute_course_handicap,
    compute_handicap_index,
    compute_score_differential,
    is_round_eligible_for_handicap,
)
from league.leaderboard import validate_limit

logger = logging.getLogger(__name__)

_player_locks: dict[str, threading.Lock] = {}
_player_locks_guard = threading.Lock()


@dataclass(frozen=True)
class PostResult:
    success: bool
    handicap_index: Optional[float] = None
    course_handicap: Optional[int] = None
    adjusted_gross_score: Optional[int] = None
    score_differential: Optional[float] = None
    error: Optional[str] = None


@contextmanager
def player_lock(player_id: str) -> Iterator[None]:
    """Serialize index read-modify-write cycles for one player."""
    with _player_locks_guard:
        lock = _player_locks.setdefault(player_id, threading.Lock())
    with lock:
        yield


def compute_user_handicap(store, player_id: str) -> HandicapResult | None:
    records = store.fetch_posted_rounds_for_player(player_id)
    return compute_handicap_index(records)


def _store_new_index(store, player_id: str, today: date) -> HandicapResult | None:
    result = compute_user_handicap(store, player_id)
    if result is None:
        return None
    store.update_player_handicap_index(player_id, result.handicap_index)
    store.append_handicap_history(
        player_id, result.handicap_index, today, result.number_of_scores_used
    )
    return result


def post_round_for_handicap(
    store, round_record: RoundRecord, today: date | None = None
) -> PostResult:
    """Post a completed round and refresh the player's Handicap Index.

    The round is written with its course handicap, adjusted gross score and
    differential before the index is recomputed. A failed recomputation
    leaves the round posted and returns a successful result without an
    index.
    """
    today = today or date.today()
    if not is_round_eligible_for_handicap(
        len(round_record.holes), round_record.course_rating, round_record.slope_rating
    ):
        logger.info("Round %s is not eligible for handicap posting", round_record.round_id)
        return PostResult(
            success=False,
            error="Round is not eligible for handicap: 18 holes and valid course/slope ratings are required.",
        )

    course_rating = round_record.course_rating
    slope_rating = round_record.slope_rating
    par = round_record.course_par
    if par is None:
        logger.warning("Round %s has no course par, assuming %d", round_record.round_id, DEFAULT_PAR)
        par = DEFAULT_PAR

    with player_lock(round_record.player_id):
        try:
            player = store.fetch_player(round_record.player_id) or {}
            current_index = player.get("current_handicap_index") or 0
            course_handicap = compute_course_handicap(current_index, slope_rating, course_rating, par)
            adjusted = compute_adjusted_gross_score(
                round_record.hole_strokes, round_record.hole_pars, course_handicap
            )
            differential = compute_score_differential(adjusted, course_rating, slope_rating)
            updated_round = store.update_round(
                round_record.round_id,
                course_handicap=course_handicap,
                adjusted_gross_score=adjusted,
                score_differential=differential,
                posted=True,
            )
        except UpstreamFetchError as exc:
            return PostResult(success=False, error=f"Failed to post round for handicap: {exc}")
        if not updated_round:
            logger.warning("Round %s was not found when posting for handicap", round_record.round_id)
            return PostResult(
                success=False,
                error=f"Failed to post round for handicap: round {round_record.round_id} not found",
            )

        result = PostResult(
            success=True,
            course_handicap=course_handicap,
            adjusted_gross_score=adjusted,
            score_differential=differential,
        )
        try:
            updated = _store_new_index(store, round_record.player_id, today)
        except UpstreamFetchError as exc:
            logger.warning(
                "Round %s posted but handicap recomputation failed for player %s: %s",
                round_record.round_id,
                round_record.player_id,
                exc,
            )
            return result

    if updated is None:
        logger.info("Player %s does not have enough posted rounds for an index yet", round_record.player_id)
        return result
    logger.info(
        "Player %s handicap index is now %.1f (%d differentials used)",
        round_record.player_id,
        updated.handicap_index,
        updated.number_of_scores_used,
    )
    return replace(result, handicap_index=updated.handicap_index)


def fetch_handicap_history(store, player_id: str, limit: int = 30) -> list[dict]:
    validate_limit(limit)
    return store.fetch_handicap_history(player_id, limit)


def course_handicap_for_tee_box(store, player_id: str, tee_box_id: str) -> int:
    player = store.fetch_player(player_id)
    if not player or not player.get("current_handicap_index"):
        return 0
    tee_box = store.fetch_tee_box(tee_box_id)
    if not tee_box:
        return 0
    return compute_course_handicap(
        player["current_handicap_index"],
        tee_box["slope_rating"],
        tee_box["course_rating"],
        tee_box.get("par") or DEFAULT_PAR,
    )


def recalculate_all_handicaps(store, today: date | None = None) -> dict[str, int]:
    today = today or date.today()
    success = 0
    failed = 0
    for player_id in store.fetch_player_ids():
        with player_lock(player_id):
            try:
                result = _store_new_index(store, player_id, today)
            except UpstreamFetchError:
                logger.exception("Failed to recalculate handicap for player %s", player_id)
                failed += 1
                continue
        if result is not None:
            success += 1
    logger.info("Recalculated handicaps: %d updated, %d failed", success, failed)
    return {"success": success, "failed": failed}
