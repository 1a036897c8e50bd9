"""In-process league store so the engine and API can run without Postgres.

Implements the same read/write surface as ``league.db.PostgresStore``.
"""

from __future__ import annotations

import threading
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from league.db import PostgresStore
from league.handicap import DEFAULT_PAR, RoundRecord, ScoreDifferentialRecord
from league.settings import Settings


def _new_id() -> str:
    return str(uuid.uuid4())


class MemoryStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._players: Dict[str, Dict[str, Any]] = {}
        self._courses: Dict[str, Dict[str, Any]] = {}
        self._tee_boxes: Dict[str, Dict[str, Any]] = {}
        self._events: Dict[str, Dict[str, Any]] = {}
        self._rounds: Dict[str, Dict[str, Any]] = {}
        self._teams: Dict[str, Dict[str, Any]] = {}
        self._history: List[Dict[str, Any]] = []

    # seeding

    def add_player(
        self,
        first_name: str,
        last_name: str,
        *,
        player_id: str | None = None,
        handicap_index: float | None = None,
    ) -> str:
        player_id = player_id or _new_id()
        with self._lock:
            self._players[player_id] = {
                "id": player_id,
                "first_name": first_name,
                "last_name": last_name,
                "current_handicap_index": handicap_index,
            }
        return player_id

    def add_course(
        self,
        name: str,
        hole_pars: Sequence[int],
        *,
        course_id: str | None = None,
        total_par: int | None = None,
    ) -> str:
        course_id = course_id or _new_id()
        with self._lock:
            self._courses[course_id] = {
                "id": course_id,
                "name": name,
                "hole_pars": list(hole_pars),
                "total_par": total_par if total_par is not None else sum(hole_pars),
            }
        return course_id

    def add_tee_box(
        self,
        course_id: str,
        name: str,
        course_rating: float,
        slope_rating: float,
        *,
        tee_box_id: str | None = None,
    ) -> str:
        tee_box_id = tee_box_id or _new_id()
        with self._lock:
            if course_id not in self._courses:
                raise KeyError(course_id)
            self._tee_boxes[tee_box_id] = {
                "id": tee_box_id,
                "course_id": course_id,
                "name": name,
                "course_rating": course_rating,
                "slope_rating": slope_rating,
            }
        return tee_box_id

    def add_event(
        self,
        name: str,
        event_date: date,
        tee_box_id: str,
        *,
        event_id: str | None = None,
    ) -> str:
        event_id = event_id or _new_id()
        with self._lock:
            self._events[event_id] = {
                "id": event_id,
                "name": name,
                "event_date": event_date,
                "tee_box_id": tee_box_id,
            }
        return event_id

    def add_round(
        self,
        player_id: str,
        tee_box_id: str,
        played_date: date,
        strokes: Sequence[int],
        *,
        event_id: str | None = None,
        round_id: str | None = None,
        gross_score: int | None = None,
        course_handicap: int | None = None,
    ) -> str:
        round_id = round_id or _new_id()
        with self._lock:
            if player_id not in self._players:
                raise KeyError(player_id)
            tee_box = self._tee_boxes[tee_box_id]
            self._rounds[round_id] = {
                "id": round_id,
                "player_id": player_id,
                "event_id": event_id,
                "course_id": tee_box["course_id"],
                "tee_box_id": tee_box_id,
                "played_date": played_date,
                "strokes": list(strokes),
                "total_score": gross_score if gross_score is not None else sum(strokes),
                "course_handicap": course_handicap,
                "adjusted_score": None,
                "score_differential": None,
                "posted": False,
            }
        return round_id

    def add_team(
        self,
        name: str,
        season_year: int,
        member_ids: Sequence[str],
        *,
        team_id: str | None = None,
    ) -> str:
        team_id = team_id or _new_id()
        with self._lock:
            self._teams[team_id] = {
                "id": team_id,
                "name": name,
                "season_year": season_year,
                "member_ids": list(member_ids),
            }
        return team_id

    # storage surface

    def fetch_player(self, player_id: str) -> Optional[dict]:
        with self._lock:
            player = self._players.get(player_id)
            return dict(player) if player else None

    def fetch_player_ids(self) -> list[str]:
        with self._lock:
            players = sorted(
                self._players.values(),
                key=lambda entry: (entry["last_name"] or "", entry["first_name"] or ""),
            )
            return [player["id"] for player in players]

    def fetch_posted_rounds_for_player(self, player_id: str) -> list[ScoreDifferentialRecord]:
        with self._lock:
            records = []
            for entry in self._rounds.values():
                if entry["player_id"] != player_id or not entry["posted"]:
                    continue
                tee_box = self._tee_boxes.get(entry["tee_box_id"]) or {}
                if not (
                    entry["adjusted_score"]
                    and tee_box.get("course_rating")
                    and tee_box.get("slope_rating")
                ):
                    continue
                records.append(
                    ScoreDifferentialRecord(
                        adjusted_gross_score=entry["adjusted_score"],
                        course_rating=tee_box["course_rating"],
                        slope_rating=tee_box["slope_rating"],
                        played_date=entry["played_date"],
                    )
                )
        records.sort(key=lambda record: record.played_date, reverse=True)
        return records

    def fetch_round(self, round_id: str) -> Optional[RoundRecord]:
        with self._lock:
            entry = self._rounds.get(round_id)
            if not entry:
                return None
            tee_box = self._tee_boxes.get(entry["tee_box_id"]) or {}
            course = self._courses.get(entry["course_id"]) or {}
            pars = course.get("hole_pars") or []
            return RoundRecord(
                round_id=entry["id"],
                player_id=entry["player_id"],
                played_date=entry["played_date"],
                holes=list(zip(entry["strokes"], pars)),
                course_rating=tee_box.get("course_rating"),
                slope_rating=tee_box.get("slope_rating"),
                course_id=entry["course_id"],
                tee_box_id=entry["tee_box_id"],
                event_id=entry["event_id"],
                course_par=course.get("total_par"),
                gross_score=entry["total_score"],
            )

    def fetch_tee_box(self, tee_box_id: str) -> Optional[dict]:
        with self._lock:
            tee_box = self._tee_boxes.get(tee_box_id)
            if not tee_box:
                return None
            course = self._courses.get(tee_box["course_id"]) or {}
            return {
                "id": tee_box["id"],
                "course_rating": tee_box["course_rating"],
                "slope_rating": tee_box["slope_rating"],
                "par": course.get("total_par", DEFAULT_PAR),
            }

    def update_round(
        self,
        round_id: str,
        *,
        course_handicap: int,
        adjusted_gross_score: int,
        score_differential: float,
        posted: bool = True,
    ) -> bool:
        with self._lock:
            entry = self._rounds.get(round_id)
            if entry is None:
                return False
            entry["course_handicap"] = course_handicap
            entry["adjusted_score"] = adjusted_gross_score
            entry["score_differential"] = score_differential
            entry["posted"] = posted
        return True

    def update_player_handicap_index(self, player_id: str, value: float) -> None:
        with self._lock:
            player = self._players.get(player_id)
            if player is not None:
                player["current_handicap_index"] = value

    def append_handicap_history(
        self, player_id: str, value: float, recorded_date: date, rounds_used: int
    ) -> None:
        with self._lock:
            self._history.append(
                {
                    "player_id": player_id,
                    "handicap_index": value,
                    "recorded_date": recorded_date,
                    "rounds_used": rounds_used,
                }
            )

    def fetch_handicap_history(self, player_id: str, limit: int = 30) -> list[dict]:
        with self._lock:
            # insertion order breaks ties between entries recorded the same day
            entries = [
                (position, dict(entry))
                for position, entry in enumerate(self._history)
                if entry["player_id"] == player_id
            ]
        entries.sort(key=lambda item: (item[1]["recorded_date"], item[0]), reverse=True)
        return [entry for _, entry in entries[:limit]]

    def _round_row_locked(self, entry: dict) -> dict:
        player = self._players.get(entry["player_id"]) or {}
        course = self._courses.get(entry["course_id"]) or {}
        name = " ".join(
            part for part in (player.get("first_name"), player.get("last_name")) if part
        )
        return {
            "round_id": entry["id"],
            "player_id": entry["player_id"],
            "player_name": name,
            "gross_score": entry["total_score"],
            "course_handicap": entry["course_handicap"],
            "handicap_index": player.get("current_handicap_index"),
            "par": course.get("total_par"),
            "played_date": entry["played_date"],
        }

    def fetch_rounds_for_event(self, event_id: str) -> list[dict]:
        with self._lock:
            rows = [
                self._round_row_locked(entry)
                for entry in self._rounds.values()
                if entry["event_id"] == event_id
            ]
        rows.sort(key=lambda row: row["gross_score"])
        return rows

    def fetch_rounds_for_season(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[dict]:
        with self._lock:
            rows = [
                self._round_row_locked(entry)
                for entry in self._rounds.values()
                if (start is None or entry["played_date"] >= start)
                and (end is None or entry["played_date"] <= end)
            ]
        rows.sort(key=lambda row: row["played_date"])
        return rows

    def fetch_teams_for_event(self, event_id: str) -> list[dict]:
        with self._lock:
            event = self._events.get(event_id)
            if not event:
                return []
            season_year = event["event_date"].year
            teams = [
                {
                    "team_id": team["id"],
                    "team_name": team["name"],
                    "member_ids": list(team["member_ids"]),
                }
                for team in self._teams.values()
                if team["season_year"] == season_year
            ]
        teams.sort(key=lambda team: team["team_name"])
        return teams

    def fetch_player_rounds(self, player_id: str, limit: Optional[int] = None) -> list[dict]:
        with self._lock:
            rows = [
                {
                    "round_id": entry["id"],
                    "gross_score": entry["total_score"],
                    "played_date": entry["played_date"],
                    "course_name": (self._courses.get(entry["course_id"]) or {}).get("name"),
                }
                for entry in self._rounds.values()
                if entry["player_id"] == player_id
            ]
        rows.sort(key=lambda row: row["played_date"], reverse=True)
        return rows[:limit] if limit is not None else rows

    def fetch_hole_scores(self, round_ids: Sequence[str]) -> list[dict]:
        with self._lock:
            scores = []
            for round_id in dict.fromkeys(round_ids):
                entry = self._rounds.get(round_id)
                if not entry:
                    continue
                pars = (self._courses.get(entry["course_id"]) or {}).get("hole_pars") or []
                for strokes, par in zip(entry["strokes"], pars):
                    scores.append({"round_id": round_id, "strokes": strokes, "par": par})
        return scores


def open_store(settings: Settings):
    if settings.database_url.startswith("memory:"):
        return MemoryStore()
    return PostgresStore(settings.database_url)
