from datetime import date

import pytest

from conftest import strokes_for
from league.db import UpstreamFetchError
from league.handicap import InvalidInputError
from league.leaderboard import (
    LeaderboardEntry,
    assign_positions,
    build_season_standings,
    compute_event_leaderboard,
    compute_season_standings,
    compute_team_leaderboard,
    season_window,
)


def _entry(player_id: str, gross: int, net: int) -> LeaderboardEntry:
    return LeaderboardEntry(player_id, player_id.upper(), gross, net, gross - net)


def _row(player_id: str, gross: int, course_handicap=0, played=date(2024, 5, 1), **extra) -> dict:
    row = {
        "round_id": f"{player_id}-{played.isoformat()}",
        "player_id": player_id,
        "player_name": player_id.title(),
        "gross_score": gross,
        "course_handicap": course_handicap,
        "handicap_index": None,
        "par": 72,
        "played_date": played,
    }
    row.update(extra)
    return row


class RowStore:
    def __init__(self, event_rows=(), season_rows=(), teams=()):
        self.event_rows = list(event_rows)
        self.season_rows = list(season_rows)
        self.teams = list(teams)
        self.season_calls = []

    def fetch_rounds_for_event(self, event_id):
        return self.event_rows

    def fetch_rounds_for_season(self, start=None, end=None):
        self.season_calls.append((start, end))
        return self.season_rows

    def fetch_teams_for_event(self, event_id):
        return self.teams


def test_positions_skip_after_ties():
    entries = [_entry("a", 68, 68), _entry("b", 70, 70), _entry("c", 70, 70), _entry("d", 71, 71)]
    ranked = assign_positions(entries, "gross")
    assert [entry.position for entry in ranked] == [1, 2, 2, 4]


def test_positions_for_leading_tie():
    entries = [_entry("c", 72, 72), _entry("a", 70, 70), _entry("b", 70, 70)]
    ranked = assign_positions(entries, "net")
    assert [entry.player_id for entry in ranked[:2]] == ["a", "b"]
    assert [entry.position for entry in ranked] == [1, 1, 3]


def test_positions_follow_sort_mode():
    entries = [_entry("low-gross", 75, 75), _entry("low-net", 90, 70)]
    assert assign_positions(list(entries), "gross")[0].player_id == "low-gross"
    assert assign_positions(list(entries), "net")[0].player_id == "low-net"


def test_assign_positions_rejects_unknown_sort():
    with pytest.raises(InvalidInputError):
        assign_positions([], "stableford")


def test_event_leaderboard_from_store(league_store):
    scores = {"p1": (80, 8), "p2": (85, 14), "p3": (78, None)}
    for player_id, (gross, course_handicap) in scores.items():
        league_store.add_player(player_id.upper(), "Player", player_id=player_id)
        league_store.add_round(
            player_id,
            "tee-1",
            date(2024, 6, 1),
            strokes_for(gross),
            event_id="event-1",
            course_handicap=course_handicap,
        )

    net = compute_event_leaderboard(league_store, "event-1")
    assert [(entry.player_id, entry.net_score, entry.position) for entry in net] == [
        ("p2", 71, 1),
        ("p1", 72, 2),
        ("p3", 78, 3),
    ]
    assert net[2].course_handicap == 0
    assert net[0].score_to_par == 13
    assert net[0].player_name == "P2 Player"

    gross = compute_event_leaderboard(league_store, "event-1", "gross")
    assert [entry.player_id for entry in gross] == ["p3", "p1", "p2"]


def test_event_leaderboard_defaults_missing_par():
    store = RowStore(event_rows=[_row("a", 80, par=None)])
    entries = compute_event_leaderboard(store, "event-1", default_par=70)
    assert entries[0].score_to_par == 10


def test_event_leaderboard_empty_event(league_store):
    assert compute_event_leaderboard(league_store, "no-such-event") == []


def test_event_leaderboard_rejects_unknown_sort_before_fetching():
    class ExplodingStore:
        def fetch_rounds_for_event(self, event_id):
            raise AssertionError("should not fetch")

    with pytest.raises(InvalidInputError):
        compute_event_leaderboard(ExplodingStore(), "event-1", "points")


def test_event_leaderboard_propagates_upstream_errors():
    class FailingStore:
        def fetch_rounds_for_event(self, event_id):
            raise UpstreamFetchError("Failed to fetch event rounds: timeout")

    with pytest.raises(UpstreamFetchError):
        compute_event_leaderboard(FailingStore(), "event-1")


def test_season_standings_average_and_round():
    rows = [
        _row("a", 80, 5, date(2024, 4, 1)),
        _row("a", 82, 5, date(2024, 5, 1)),
        _row("a", 81, 5, date(2024, 6, 1)),
        _row("b", 79, 3, date(2024, 4, 1)),
        _row("b", 80, 4, date(2024, 5, 1)),
    ]
    gross = build_season_standings(rows, "gross")
    by_player = {entry.player_id: entry for entry in gross}
    assert by_player["a"].gross_score == 81
    assert by_player["a"].thru == 3
    # 79.5 rounds up
    assert by_player["b"].gross_score == 80
    assert [entry.player_id for entry in gross] == ["b", "a"]

    net = build_season_standings(rows, "net")
    # b: (76 + 76) / 2, a: (75 + 77 + 76) / 3
    assert [(entry.player_id, entry.net_score) for entry in net] == [("a", 76), ("b", 76)]
    assert [entry.position for entry in net] == [1, 1]


def test_season_standings_truncate_without_renumbering():
    rows = [_row(name, gross) for name, gross in [("a", 70), ("b", 72), ("c", 72), ("d", 75)]]
    standings = build_season_standings(rows, "gross", limit=3)
    assert [entry.position for entry in standings] == [1, 2, 2]

    standings = build_season_standings(rows, "gross", limit=1)
    assert len(standings) == 1


def test_season_standings_query_window():
    store = RowStore(season_rows=[_row("a", 80)])
    compute_season_standings(store, 2024)
    compute_season_standings(store)
    assert store.season_calls == [(date(2024, 1, 1), date(2024, 12, 31)), (None, None)]


def test_season_window():
    assert season_window(2023) == (date(2023, 1, 1), date(2023, 12, 31))
    assert season_window(None) == (None, None)


def test_team_leaderboard_sums_members():
    teams = [
        {"team_id": "t1", "team_name": "Eagles", "member_ids": ["a", "b"]},
        {"team_id": "t2", "team_name": "Hawks", "member_ids": ["c", "d"]},
        {"team_id": "t3", "team_name": "Absent", "member_ids": ["z"]},
    ]
    rows = [_row("a", 80, 10), _row("b", 85, 12), _row("c", 78, 2), _row("d", 90, 20)]
    store = RowStore(event_rows=rows, teams=teams)

    net = compute_team_leaderboard(store, "event-1")
    assert [(entry.team_id, entry.total_net_score, entry.position) for entry in net] == [
        ("t1", 143, 1),
        ("t2", 146, 2),
    ]
    assert net[0].total_gross_score == 165
    assert {member["player_id"] for member in net[0].members} == {"a", "b"}

    gross = compute_team_leaderboard(store, "event-1", "gross")
    assert [(entry.team_id, entry.position) for entry in gross] == [("t1", 1), ("t2", 2)]


def test_team_leaderboard_without_teams():
    assert compute_team_leaderboard(RowStore(), "event-1") == []


def test_season_standings_reject_negative_limit():
    rows = [_row(name, gross) for name, gross in [("a", 70), ("b", 72), ("c", 74)]]
    with pytest.raises(InvalidInputError):
        build_season_standings(rows, "gross", limit=-1)
    with pytest.raises(InvalidInputError):
        compute_season_standings(RowStore(season_rows=rows), 2024, "gross", limit=-2)

    assert build_season_standings(rows, "gross", limit=0) == []
