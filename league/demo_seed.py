from __future__ import annotations

import logging
import random
from datetime import date, timedelta

from league.posting import post_round_for_handicap
from league.store import MemoryStore

logger = logging.getLogger(__name__)

DEMO_COURSE_NAME = "Demo Links"
DEMO_HOLE_PARS = [4, 4, 3, 5, 4, 4, 3, 4, 5, 4, 3, 4, 5, 4, 4, 3, 5, 4]
DEMO_TEE = ("White", 71.2, 124)
DEMO_EVENT_NAME = "Demo Spring Medal"
DEMO_ROSTER: dict[str, tuple[str, str, int]] = {
    # id: (first name, last name, typical strokes over par)
    "demo-p1": ("Alex", "Reid", 6),
    "demo-p2": ("Sam", "Okafor", 11),
    "demo-p3": ("Jordan", "Lindqvist", 15),
    "demo-p4": ("Riley", "Moreau", 19),
    "demo-p5": ("Casey", "Tanaka", 24),
    "demo-p6": ("Morgan", "Silva", 30),
}
DEMO_TEAMS = {
    "Birdie Hunters": ["demo-p1", "demo-p4", "demo-p5"],
    "Sand Savers": ["demo-p2", "demo-p3", "demo-p6"],
}
HISTORY_ROUNDS = 8


def _demo_strokes(rng: random.Random, over_par: int) -> list[int]:
    strokes = list(DEMO_HOLE_PARS)
    for _ in range(max(0, over_par + rng.randint(-3, 3))):
        strokes[rng.randrange(len(strokes))] += 1
    return strokes


def ensure_demo_league(store: MemoryStore, today: date | None = None) -> str | None:
    """Seed a course, players, posted history and one event; returns the event id."""
    if store.fetch_player_ids():
        return None
    today = today or date.today()
    rng = random.Random(2024)

    course_id = store.add_course(DEMO_COURSE_NAME, DEMO_HOLE_PARS, course_id="demo-course")
    tee_name, course_rating, slope_rating = DEMO_TEE
    tee_box_id = store.add_tee_box(course_id, tee_name, course_rating, slope_rating, tee_box_id="demo-tee")
    for player_id, (first_name, last_name, _) in DEMO_ROSTER.items():
        store.add_player(first_name, last_name, player_id=player_id)

    for offset in range(HISTORY_ROUNDS, 0, -1):
        played = today - timedelta(days=7 * offset)
        for player_id, (_, _, over_par) in DEMO_ROSTER.items():
            round_id = store.add_round(player_id, tee_box_id, played, _demo_strokes(rng, over_par))
            post_round_for_handicap(store, store.fetch_round(round_id), today=played)

    event_id = store.add_event(DEMO_EVENT_NAME, today, tee_box_id, event_id="demo-event")
    for player_id, (_, _, over_par) in DEMO_ROSTER.items():
        round_id = store.add_round(
            player_id, tee_box_id, today, _demo_strokes(rng, over_par), event_id=event_id
        )
        post_round_for_handicap(store, store.fetch_round(round_id), today=today)

    for team_name, member_ids in DEMO_TEAMS.items():
        store.add_team(team_name, today.year, member_ids)
    logger.info("Seeded demo league with %d players and event %s", len(DEMO_ROSTER), event_id)
    return event_id
