"""Event leaderboards, season standings and team totals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Optional, Sequence, TypeVar

from league.handicap import DEFAULT_PAR, InvalidInputError, compute_net_score, round_half_up

logger = logging.getLogger(__name__)

SORT_MODES = ("gross", "net")

Ranked = TypeVar("Ranked")


@dataclass
class LeaderboardEntry:
    player_id: str
    player_name: str
    gross_score: int
    net_score: int
    course_handicap: int
    handicap_index: Optional[float] = None
    position: int = 0
    round_id: str = ""
    thru: Optional[int] = None
    score_to_par: Optional[int] = None


@dataclass
class TeamLeaderboardEntry:
    team_id: str
    team_name: str
    total_gross_score: int
    total_net_score: int
    position: int = 0
    members: list[dict] = field(default_factory=list)


def validate_sort_by(sort_by: str) -> None:
    if sort_by not in SORT_MODES:
        raise InvalidInputError(f"sort_by must be 'gross' or 'net', got {sort_by!r}")


def validate_limit(limit: int) -> None:
    if limit < 0:
        raise InvalidInputError(f"limit must not be negative, got {limit}")


def rank_entries(entries: Iterable[Ranked], score: Callable[[Ranked], int]) -> list[Ranked]:
    """Sort ascending by score and assign positions.

    A tie with the immediately preceding entry shares its position; any
    other entry takes its 1-based index, so [70, 70, 72] ranks 1, 1, 3.
    """
    ranked = sorted(entries, key=score)
    position = 1
    for index, entry in enumerate(ranked):
        if index > 0 and score(entry) != score(ranked[index - 1]):
            position = index + 1
        entry.position = position
    return ranked


def assign_positions(entries: Iterable[LeaderboardEntry], sort_by: str = "net") -> list[LeaderboardEntry]:
    validate_sort_by(sort_by)
    if sort_by == "gross":
        return rank_entries(entries, lambda entry: entry.gross_score)
    return rank_entries(entries, lambda entry: entry.net_score)


def _course_handicap(row: dict, missing: list[str]) -> int:
    value = row.get("course_handicap")
    if value is None:
        missing.append(row.get("round_id") or row.get("player_id") or "?")
        return 0
    return int(value)


def build_event_leaderboard(
    rows: Sequence[dict], sort_by: str = "net", default_par: int = DEFAULT_PAR
) -> list[LeaderboardEntry]:
    validate_sort_by(sort_by)
    missing_handicaps: list[str] = []
    missing_par = 0
    entries = []
    for row in rows:
        gross = row["gross_score"]
        course_handicap = _course_handicap(row, missing_handicaps)
        par = row.get("par")
        if not par:
            missing_par += 1
            par = default_par
        entries.append(
            LeaderboardEntry(
                player_id=row["player_id"],
                player_name=row.get("player_name") or "",
                gross_score=gross,
                net_score=compute_net_score(gross, course_handicap),
                course_handicap=course_handicap,
                handicap_index=row.get("handicap_index"),
                round_id=row.get("round_id") or "",
                score_to_par=gross - par,
            )
        )
    if missing_handicaps:
        logger.warning(
            "%d round(s) without a course handicap, counting them as 0: %s",
            len(missing_handicaps),
            ", ".join(missing_handicaps),
        )
    if missing_par:
        logger.warning("%d round(s) without a course par, assuming %d", missing_par, default_par)
    return assign_positions(entries, sort_by)


def compute_event_leaderboard(
    store, event_id: str, sort_by: str = "net", default_par: int = DEFAULT_PAR
) -> list[LeaderboardEntry]:
    validate_sort_by(sort_by)
    rows = store.fetch_rounds_for_event(event_id)
    return build_event_leaderboard(rows, sort_by, default_par)


def season_window(season_year: Optional[int]) -> tuple[Optional[date], Optional[date]]:
    if not season_year:
        return None, None
    return date(season_year, 1, 1), date(season_year, 12, 31)


def build_season_standings(
    rows: Sequence[dict], sort_by: str = "net", limit: int = 50
) -> list[LeaderboardEntry]:
    validate_sort_by(sort_by)
    validate_limit(limit)
    missing_handicaps: list[str] = []
    totals: dict[str, dict] = {}
    for row in rows:
        gross = row["gross_score"]
        net = compute_net_score(gross, _course_handicap(row, missing_handicaps))
        player = totals.get(row["player_id"])
        if player is None:
            totals[row["player_id"]] = {
                "player_name": row.get("player_name") or "",
                "handicap_index": row.get("handicap_index"),
                "total_gross": gross,
                "total_net": net,
                "rounds": 1,
            }
        else:
            player["total_gross"] += gross
            player["total_net"] += net
            player["rounds"] += 1
    if missing_handicaps:
        logger.warning(
            "%d season round(s) without a course handicap, counting them as 0",
            len(missing_handicaps),
        )

    entries = [
        LeaderboardEntry(
            player_id=player_id,
            player_name=player["player_name"],
            gross_score=int(round_half_up(player["total_gross"] / player["rounds"])),
            net_score=int(round_half_up(player["total_net"] / player["rounds"])),
            course_handicap=0,
            handicap_index=player["handicap_index"],
            thru=player["rounds"],
        )
        for player_id, player in totals.items()
    ]
    # rank the whole field before truncating so positions are not renumbered
    return assign_positions(entries, sort_by)[:limit]


def compute_season_standings(
    store, season_year: Optional[int] = None, sort_by: str = "net", limit: int = 50
) -> list[LeaderboardEntry]:
    validate_sort_by(sort_by)
    validate_limit(limit)
    start, end = season_window(season_year)
    rows = store.fetch_rounds_for_season(start, end)
    return build_season_standings(rows, sort_by, limit)


def build_team_leaderboard(
    teams: Sequence[dict], rows: Sequence[dict], sort_by: str = "net"
) -> list[TeamLeaderboardEntry]:
    validate_sort_by(sort_by)
    rows_by_player: dict[str, list[dict]] = {}
    for row in rows:
        rows_by_player.setdefault(row["player_id"], []).append(row)

    entries = []
    for team in teams:
        members = []
        for member_id in team["member_ids"]:
            for row in rows_by_player.get(member_id, []):
                gross = row["gross_score"]
                members.append(
                    {
                        "player_id": member_id,
                        "player_name": row.get("player_name") or "",
                        "gross_score": gross,
                        "net_score": compute_net_score(gross, row.get("course_handicap")),
                    }
                )
        if not members:
            continue
        entries.append(
            TeamLeaderboardEntry(
                team_id=team["team_id"],
                team_name=team["team_name"],
                total_gross_score=sum(member["gross_score"] for member in members),
                total_net_score=sum(member["net_score"] for member in members),
                members=members,
            )
        )
    if sort_by == "gross":
        return rank_entries(entries, lambda entry: entry.total_gross_score)
    return rank_entries(entries, lambda entry: entry.total_net_score)


def compute_team_leaderboard(store, event_id: str, sort_by: str = "net") -> list[TeamLeaderboardEntry]:
    validate_sort_by(sort_by)
    teams = store.fetch_teams_for_event(event_id)
    if not teams:
        return []
    rows = store.fetch_rounds_for_event(event_id)
    return build_team_leaderboard(teams, rows, sort_by)
