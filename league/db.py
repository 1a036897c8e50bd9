import logging
from contextlib import contextmanager
from datetime import date
from typing import Iterator, Optional, Sequence

import psycopg

from league.handicap import RoundRecord, ScoreDifferentialRecord

logger = logging.getLogger(__name__)

ROUND_CHANGES_CHANNEL = "round_changes"


class UpstreamFetchError(Exception):
    pass


SCHEMA_STATEMENTS = [
    """
    create table if not exists players (
        id uuid primary key default gen_random_uuid(),
        email text unique,
        first_name text,
        last_name text,
        role text not null default 'member',
        current_handicap_index numeric(4, 1),
        created_at timestamptz not null default now(),
        updated_at timestamptz not null default now()
    );
    """,
    """
    create table if not exists courses (
        id uuid primary key default gen_random_uuid(),
        name text not null,
        city text,
        state text,
        total_par integer not null default 72
    );
    """,
    """
    create table if not exists tee_boxes (
        id uuid primary key default gen_random_uuid(),
        course_id uuid not null references courses(id) on delete cascade,
        name text not null,
        course_rating numeric(4, 1) not null,
        slope_rating integer not null
    );
    """,
    """
    create table if not exists holes (
        id uuid primary key default gen_random_uuid(),
        course_id uuid not null references courses(id) on delete cascade,
        hole_number integer not null check (hole_number between 1 and 18),
        par integer not null check (par in (3, 4, 5)),
        handicap_index integer not null check (handicap_index between 1 and 18),
        unique (course_id, hole_number)
    );
    """,
    """
    create table if not exists events (
        id uuid primary key default gen_random_uuid(),
        name text not null,
        event_date date not null,
        course_id uuid not null references courses(id) on delete restrict,
        tee_box_id uuid not null references tee_boxes(id) on delete restrict,
        status text not null default 'scheduled'
    );
    """,
    """
    create table if not exists rounds (
        id uuid primary key default gen_random_uuid(),
        player_id uuid not null references players(id) on delete cascade,
        event_id uuid references events(id) on delete set null,
        course_id uuid not null references courses(id) on delete restrict,
        tee_box_id uuid not null references tee_boxes(id) on delete restrict,
        played_date date not null,
        total_score integer not null,
        course_handicap integer,
        adjusted_score integer,
        score_differential numeric(5, 1),
        is_posted_for_handicap boolean not null default false,
        updated_at timestamptz not null default now()
    );
    """,
    """
    create table if not exists scores (
        id uuid primary key default gen_random_uuid(),
        round_id uuid not null references rounds(id) on delete cascade,
        hole_id uuid not null references holes(id) on delete restrict,
        strokes integer not null check (strokes > 0 and strokes <= 15),
        unique (round_id, hole_id)
    );
    """,
    """
    create table if not exists teams (
        id uuid primary key default gen_random_uuid(),
        name text not null,
        season_year integer not null,
        unique (name, season_year)
    );
    """,
    """
    create table if not exists team_members (
        team_id uuid not null references teams(id) on delete cascade,
        player_id uuid not null references players(id) on delete cascade,
        primary key (team_id, player_id)
    );
    """,
    """
    create table if not exists handicap_history (
        id uuid primary key default gen_random_uuid(),
        player_id uuid not null references players(id) on delete cascade,
        handicap_index numeric(4, 1) not null,
        recorded_date date not null,
        rounds_used integer not null,
        created_at timestamptz not null default now()
    );
    """,
    "create index if not exists idx_rounds_player_id on rounds(player_id);",
    "create index if not exists idx_rounds_event_id on rounds(event_id);",
    "create index if not exists idx_rounds_played_date on rounds(played_date);",
    """
    create index if not exists idx_handicap_history_player_date
    on handicap_history(player_id, recorded_date desc);
    """,
    f"""
    create or replace function notify_round_change() returns trigger as $$
    declare
        payload text;
    begin
        if tg_op = 'DELETE' then
            payload := coalesce(old.event_id::text, '');
        else
            payload := coalesce(new.event_id::text, '');
        end if;
        perform pg_notify('{ROUND_CHANGES_CHANNEL}', payload);
        return null;
    end;
    $$ language plpgsql;
    """,
    "drop trigger if exists rounds_notify_change on rounds;",
    """
    create trigger rounds_notify_change
    after insert or update or delete on rounds
    for each row execute function notify_round_change();
    """,
]

_ROUND_ROW_SELECT = """
    select
        r.id::text,
        r.player_id::text,
        concat_ws(' ', p.first_name, p.last_name),
        r.total_score,
        r.course_handicap,
        p.current_handicap_index,
        c.total_par,
        r.played_date
    from rounds r
    join players p on p.id = r.player_id
    left join courses c on c.id = r.course_id
"""


@contextmanager
def _connect(database_url: str, action: str) -> Iterator[psycopg.Connection]:
    try:
        with psycopg.connect(database_url) as conn:
            yield conn
    except psycopg.Error as exc:
        logger.error("Database call failed while trying to %s: %s", action, exc)
        raise UpstreamFetchError(f"Failed to {action}: {exc}") from exc


def _optional_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def _round_row(row: tuple) -> dict:
    return {
        "round_id": row[0],
        "player_id": row[1],
        "player_name": row[2],
        "gross_score": row[3],
        "course_handicap": row[4],
        "handicap_index": _optional_float(row[5]),
        "par": row[6],
        "played_date": row[7],
    }


def ensure_schema(database_url: str) -> None:
    with _connect(database_url, "create the schema") as conn:
        with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)


def fetch_player(database_url: str, player_id: str) -> Optional[dict]:
    with _connect(database_url, f"fetch player {player_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select id::text, first_name, last_name, current_handicap_index
                from players
                where id = %s;
                """,
                (player_id,),
            )
            row = cur.fetchone()
    if not row:
        return None
    return {
        "id": row[0],
        "first_name": row[1],
        "last_name": row[2],
        "current_handicap_index": _optional_float(row[3]),
    }


def fetch_player_ids(database_url: str) -> list[str]:
    with _connect(database_url, "fetch players") as conn:
        with conn.cursor() as cur:
            cur.execute("select id::text from players order by last_name, first_name;")
            return [row[0] for row in cur.fetchall()]


def fetch_posted_rounds_for_player(
    database_url: str, player_id: str
) -> list[ScoreDifferentialRecord]:
    with _connect(database_url, f"fetch posted rounds for player {player_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select r.adjusted_score, t.course_rating, t.slope_rating, r.played_date
                from rounds r
                left join tee_boxes t on t.id = r.tee_box_id
                where r.player_id = %s
                  and r.is_posted_for_handicap
                order by r.played_date desc;
                """,
                (player_id,),
            )
            rows = cur.fetchall()
    return [
        ScoreDifferentialRecord(
            adjusted_gross_score=row[0],
            course_rating=float(row[1]),
            slope_rating=float(row[2]),
            played_date=row[3],
        )
        for row in rows
        if row[0] and row[1] and row[2]
    ]


def fetch_round(database_url: str, round_id: str) -> Optional[RoundRecord]:
    with _connect(database_url, f"fetch round {round_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select
                    r.id::text,
                    r.player_id::text,
                    r.course_id::text,
                    r.tee_box_id::text,
                    r.event_id::text,
                    r.played_date,
                    t.course_rating,
                    t.slope_rating,
                    c.total_par,
                    r.total_score
                from rounds r
                left join tee_boxes t on t.id = r.tee_box_id
                left join courses c on c.id = r.course_id
                where r.id = %s;
                """,
                (round_id,),
            )
            row = cur.fetchone()
            if not row:
                return None
            cur.execute(
                """
                select s.strokes, h.par
                from scores s
                join holes h on h.id = s.hole_id
                where s.round_id = %s
                order by h.hole_number;
                """,
                (round_id,),
            )
            holes = [(strokes, par) for strokes, par in cur.fetchall()]
    return RoundRecord(
        round_id=row[0],
        player_id=row[1],
        course_id=row[2],
        tee_box_id=row[3],
        event_id=row[4],
        played_date=row[5],
        holes=holes,
        course_rating=_optional_float(row[6]),
        slope_rating=_optional_float(row[7]),
        course_par=row[8],
        gross_score=row[9],
    )


def fetch_tee_box(database_url: str, tee_box_id: str) -> Optional[dict]:
    with _connect(database_url, f"fetch tee box {tee_box_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select t.id::text, t.course_rating, t.slope_rating, c.total_par
                from tee_boxes t
                join courses c on c.id = t.course_id
                where t.id = %s;
                """,
                (tee_box_id,),
            )
            row = cur.fetchone()
    if not row:
        return None
    return {
        "id": row[0],
        "course_rating": float(row[1]),
        "slope_rating": float(row[2]),
        "par": row[3],
    }


def update_round(
    database_url: str,
    round_id: str,
    *,
    course_handicap: int,
    adjusted_gross_score: int,
    score_differential: float,
    posted: bool = True,
) -> bool:
    """Write the posting fields; False when no round has this id."""
    with _connect(database_url, f"update round {round_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                update rounds
                set course_handicap = %s,
                    adjusted_score = %s,
                    score_differential = %s,
                    is_posted_for_handicap = %s,
                    updated_at = now()
                where id = %s;
                """,
                (course_handicap, adjusted_gross_score, score_differential, posted, round_id),
            )
            return cur.rowcount > 0


def update_player_handicap_index(database_url: str, player_id: str, value: float) -> None:
    with _connect(database_url, f"update handicap index for player {player_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                update players
                set current_handicap_index = %s,
                    updated_at = now()
                where id = %s;
                """,
                (value, player_id),
            )


def append_handicap_history(
    database_url: str,
    player_id: str,
    value: float,
    recorded_date: date,
    rounds_used: int,
) -> None:
    with _connect(database_url, f"store handicap history for player {player_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                insert into handicap_history (player_id, handicap_index, recorded_date, rounds_used)
                values (%s, %s, %s, %s);
                """,
                (player_id, value, recorded_date, rounds_used),
            )


def fetch_handicap_history(database_url: str, player_id: str, limit: int = 30) -> list[dict]:
    with _connect(database_url, f"fetch handicap history for player {player_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select player_id::text, handicap_index, recorded_date, rounds_used
                from handicap_history
                where player_id = %s
                order by recorded_date desc, created_at desc
                limit %s;
                """,
                (player_id, limit),
            )
            rows = cur.fetchall()
    return [
        {
            "player_id": row[0],
            "handicap_index": float(row[1]),
            "recorded_date": row[2],
            "rounds_used": row[3],
        }
        for row in rows
    ]


def fetch_rounds_for_event(database_url: str, event_id: str) -> list[dict]:
    with _connect(database_url, f"fetch rounds for event {event_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(
                _ROUND_ROW_SELECT
                + """
                where r.event_id = %s
                order by r.total_score;
                """,
                (event_id,),
            )
            return [_round_row(row) for row in cur.fetchall()]


def fetch_rounds_for_season(
    database_url: str, start: Optional[date] = None, end: Optional[date] = None
) -> list[dict]:
    clauses = []
    params: list = []
    if start is not None:
        clauses.append("r.played_date >= %s")
        params.append(start)
    if end is not None:
        clauses.append("r.played_date <= %s")
        params.append(end)
    query = _ROUND_ROW_SELECT
    if clauses:
        query += "\nwhere " + " and ".join(clauses)
    query += "\norder by r.played_date;"
    with _connect(database_url, "fetch season rounds") as conn:
        with conn.cursor() as cur:
            cur.execute(query, tuple(params))
            return [_round_row(row) for row in cur.fetchall()]


def fetch_teams_for_event(database_url: str, event_id: str) -> list[dict]:
    with _connect(database_url, f"fetch teams for event {event_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select t.id::text, t.name, array_agg(tm.player_id::text order by tm.player_id)
                from events e
                join teams t on t.season_year = extract(year from e.event_date)::int
                join team_members tm on tm.team_id = t.id
                where e.id = %s
                group by t.id, t.name
                order by t.name;
                """,
                (event_id,),
            )
            return [
                {"team_id": row[0], "team_name": row[1], "member_ids": list(row[2] or [])}
                for row in cur.fetchall()
            ]


def fetch_player_rounds(
    database_url: str, player_id: str, limit: Optional[int] = None
) -> list[dict]:
    query = """
        select r.id::text, r.total_score, r.played_date, c.name
        from rounds r
        left join courses c on c.id = r.course_id
        where r.player_id = %s
        order by r.played_date desc
    """
    params: tuple = (player_id,)
    if limit is not None:
        query += "\nlimit %s;"
        params = (player_id, limit)
    else:
        query += ";"
    with _connect(database_url, f"fetch rounds for player {player_id}") as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            return [
                {
                    "round_id": row[0],
                    "gross_score": row[1],
                    "played_date": row[2],
                    "course_name": row[3],
                }
                for row in cur.fetchall()
            ]


def fetch_hole_scores(database_url: str, round_ids: Sequence[str]) -> list[dict]:
    if not round_ids:
        return []
    with _connect(database_url, "fetch hole scores") as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select s.round_id::text, s.strokes, h.par
                from scores s
                join holes h on h.id = s.hole_id
                where s.round_id = any(%s::uuid[]);
                """,
                (list(round_ids),),
            )
            return [
                {"round_id": row[0], "strokes": row[1], "par": row[2]}
                for row in cur.fetchall()
            ]


class PostgresStore:
    """Storage collaborator backed by Postgres; every call opens its own connection."""

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url

    def fetch_player(self, player_id: str) -> Optional[dict]:
        return fetch_player(self.database_url, player_id)

    def fetch_player_ids(self) -> list[str]:
        return fetch_player_ids(self.database_url)

    def fetch_posted_rounds_for_player(self, player_id: str) -> list[ScoreDifferentialRecord]:
        return fetch_posted_rounds_for_player(self.database_url, player_id)

    def fetch_round(self, round_id: str) -> Optional[RoundRecord]:
        return fetch_round(self.database_url, round_id)

    def fetch_tee_box(self, tee_box_id: str) -> Optional[dict]:
        return fetch_tee_box(self.database_url, tee_box_id)

    def update_round(self, round_id: str, **values) -> bool:
        return update_round(self.database_url, round_id, **values)

    def update_player_handicap_index(self, player_id: str, value: float) -> None:
        update_player_handicap_index(self.database_url, player_id, value)

    def append_handicap_history(
        self, player_id: str, value: float, recorded_date: date, rounds_used: int
    ) -> None:
        append_handicap_history(self.database_url, player_id, value, recorded_date, rounds_used)

    def fetch_handicap_history(self, player_id: str, limit: int = 30) -> list[dict]:
        return fetch_handicap_history(self.database_url, player_id, limit)

    def fetch_rounds_for_event(self, event_id: str) -> list[dict]:
        return fetch_rounds_for_event(self.database_url, event_id)

    def fetch_rounds_for_season(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[dict]:
        return fetch_rounds_for_season(self.database_url, start, end)

    def fetch_teams_for_event(self, event_id: str) -> list[dict]:
        return fetch_teams_for_event(self.database_url, event_id)

    def fetch_player_rounds(self, player_id: str, limit: Optional[int] = None) -> list[dict]:
        return fetch_player_rounds(self.database_url, player_id, limit)

    def fetch_hole_scores(self, round_ids: Sequence[str]) -> list[dict]:
        return fetch_hole_scores(self.database_url, round_ids)
