from datetime import date

import pytest

from league.store import MemoryStore

FLAT_PARS = [4] * 18


def strokes_for(total: int) -> list[int]:
    """Spread ``total`` strokes over 18 par-4 holes as evenly as possible."""
    extra = total - 72
    return [4 + extra // 18 + (1 if hole < extra % 18 else 0) for hole in range(18)]


@pytest.fixture
def league_store():
    store = MemoryStore()
    store.add_course("Flat Par Fours", FLAT_PARS, course_id="course-1")
    store.add_tee_box("course-1", "Blue", 72.0, 113, tee_box_id="tee-1")
    store.add_event("Club Medal", date(2024, 6, 1), "tee-1", event_id="event-1")
    return store
