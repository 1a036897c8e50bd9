from __future__ import annotations

from typing import Sequence

from league.handicap import round_half_up

RECENT_FORM_ROUNDS = 5
SUMMARY_ROUNDS = 20
TREND_WINDOW = 5
TREND_MARGIN = 1


def _empty_scoring_averages() -> dict[str, int]:
    return {
        "eagles": 0,
        "birdies": 0,
        "pars": 0,
        "bogeys": 0,
        "double_bogeys": 0,
        "worse": 0,
    }


def _bucket_for(strokes: int, par: int) -> str:
    diff = strokes - par
    if diff <= -2:
        return "eagles"
    if diff == -1:
        return "birdies"
    if diff == 0:
        return "pars"
    if diff == 1:
        return "bogeys"
    if diff == 2:
        return "double_bogeys"
    return "worse"


def _course_name(row: dict) -> str:
    return row.get("course_name") or "Unknown"


def build_player_stats(rounds: Sequence[dict], hole_scores: Sequence[dict]) -> dict:
    """Summarize a player's rounds; ``rounds`` must be ordered most recent first."""
    if not rounds:
        return {
            "total_rounds": 0,
            "average_score": 0,
            "lowest_score": 0,
            "highest_score": 0,
            "best_round": None,
            "scoring_averages": _empty_scoring_averages(),
            "recent_form": [],
        }

    scores = [row["gross_score"] for row in rounds]
    lowest = min(scores)
    best = next(row for row in rounds if row["gross_score"] == lowest)

    scoring_averages = _empty_scoring_averages()
    for hole in hole_scores:
        scoring_averages[_bucket_for(hole["strokes"], hole["par"])] += 1

    return {
        "total_rounds": len(rounds),
        "average_score": round_half_up(sum(scores) / len(scores), 1),
        "lowest_score": lowest,
        "highest_score": max(scores),
        "best_round": {
            "score": best["gross_score"],
            "course_name": _course_name(best),
            "date": best["played_date"],
        },
        "scoring_averages": scoring_averages,
        "recent_form": [
            {
                "date": row["played_date"],
                "score": row["gross_score"],
                "course_name": _course_name(row),
            }
            for row in rounds[:RECENT_FORM_ROUNDS]
        ],
    }


def score_trend(scores: Sequence[int]) -> str:
    """'up' when the last five rounds beat the five before by more than a stroke."""
    if len(scores) < TREND_WINDOW * 2:
        return "stable"
    recent = sum(scores[:TREND_WINDOW]) / TREND_WINDOW
    previous = sum(scores[TREND_WINDOW:TREND_WINDOW * 2]) / TREND_WINDOW
    if recent < previous - TREND_MARGIN:
        return "up"
    if recent > previous + TREND_MARGIN:
        return "down"
    return "stable"


def build_stats_summary(rounds: Sequence[dict]) -> dict:
    recent = list(rounds[:SUMMARY_ROUNDS])
    if not recent:
        return {"total_rounds": 0, "average_score": 0, "lowest_score": 0, "trend": "stable"}
    scores = [row["gross_score"] for row in recent]
    return {
        "total_rounds": len(recent),
        "average_score": round_half_up(sum(scores) / len(scores), 1),
        "lowest_score": min(scores),
        "trend": score_trend(scores),
    }


def compute_player_stats(store, player_id: str) -> dict:
    rounds = store.fetch_player_rounds(player_id)
    hole_scores = store.fetch_hole_scores([row["round_id"] for row in rounds])
    return build_player_stats(rounds, hole_scores)


def compute_stats_summary(store, player_id: str) -> dict:
    return build_stats_summary(store.fetch_player_rounds(player_id, SUMMARY_ROUNDS))
