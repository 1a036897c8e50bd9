from datetime import date, timedelta

from conftest import strokes_for
from league.stats import (
    build_player_stats,
    build_stats_summary,
    compute_player_stats,
    compute_stats_summary,
    score_trend,
)


def _rounds(scores, start=date(2024, 9, 1)):
    # most recent first, one week apart
    return [
        {
            "round_id": f"r{index}",
            "gross_score": score,
            "played_date": start - timedelta(days=7 * index),
            "course_name": "Pine Valley" if index % 2 else None,
        }
        for index, score in enumerate(scores)
    ]


def test_player_stats_without_rounds():
    stats = build_player_stats([], [])
    assert stats["total_rounds"] == 0
    assert stats["best_round"] is None
    assert stats["recent_form"] == []
    assert set(stats["scoring_averages"]) == {"eagles", "birdies", "pars", "bogeys", "double_bogeys", "worse"}


def test_player_stats_summarizes_rounds():
    rounds = _rounds([84, 79, 91, 79, 88, 86])
    holes = [
        {"round_id": "r0", "strokes": 2, "par": 4},
        {"round_id": "r0", "strokes": 3, "par": 4},
        {"round_id": "r0", "strokes": 4, "par": 4},
        {"round_id": "r0", "strokes": 5, "par": 4},
        {"round_id": "r0", "strokes": 6, "par": 4},
        {"round_id": "r0", "strokes": 8, "par": 4},
        {"round_id": "r0", "strokes": 2, "par": 5},
    ]

    stats = build_player_stats(rounds, holes)

    assert stats["total_rounds"] == 6
    assert stats["average_score"] == 84.5
    assert stats["lowest_score"] == 79
    assert stats["highest_score"] == 91
    # first of the tied lows in most-recent-first order
    assert stats["best_round"] == {"score": 79, "course_name": "Pine Valley", "date": date(2024, 8, 25)}
    assert stats["scoring_averages"] == {
        "eagles": 2,
        "birdies": 1,
        "pars": 1,
        "bogeys": 1,
        "double_bogeys": 1,
        "worse": 1,
    }
    assert len(stats["recent_form"]) == 5
    assert stats["recent_form"][0] == {"date": date(2024, 9, 1), "score": 84, "course_name": "Unknown"}


def test_trend_needs_ten_rounds():
    assert score_trend([80] * 9) == "stable"


def test_trend_direction():
    assert score_trend([80] * 5 + [85] * 5) == "up"
    assert score_trend([85] * 5 + [80] * 5) == "down"
    assert score_trend([80] * 5 + [81] * 5) == "stable"


def test_stats_summary():
    summary = build_stats_summary(_rounds([80, 82, 79, 81, 78] + [86] * 5))
    assert summary == {"total_rounds": 10, "average_score": 83.0, "lowest_score": 78, "trend": "up"}
    assert build_stats_summary([])["trend"] == "stable"


def test_stats_summary_uses_last_twenty_rounds():
    summary = build_stats_summary(_rounds([80] * 20 + [60] * 5))
    assert summary["total_rounds"] == 20
    assert summary["lowest_score"] == 80


def test_stats_from_store(league_store):
    league_store.add_player("Pat", "Green", player_id="p1")
    for week, gross in enumerate([72, 90]):
        league_store.add_round("p1", "tee-1", date(2024, 5, 1) + timedelta(days=7 * week), strokes_for(gross))

    stats = compute_player_stats(league_store, "p1")
    assert stats["total_rounds"] == 2
    assert stats["scoring_averages"]["pars"] == 18
    assert stats["scoring_averages"]["bogeys"] == 18
    assert stats["best_round"]["course_name"] == "Flat Par Fours"
    assert stats["recent_form"][0]["score"] == 90

    summary = compute_stats_summary(league_store, "p1")
    assert summary["average_score"] == 81.0
    assert summary["trend"] == "stable"
