import asyncio
import logging
import threading
from contextlib import suppress
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from league.db import UpstreamFetchError, ensure_schema
from league.demo_seed import ensure_demo_league
from league.handicap import InvalidInputError, format_handicap_index, is_round_eligible_for_handicap
from league.leaderboard import (
    compute_event_leaderboard,
    compute_season_standings,
    compute_team_leaderboard,
)
from league.posting import (
    compute_user_handicap,
    course_handicap_for_tee_box,
    fetch_handicap_history,
    post_round_for_handicap,
    recalculate_all_handicaps,
)
from league.realtime import LeaderboardHub, LeaderboardUpdate, listen_for_round_changes
from league.settings import configure_logging, load_settings
from league.stats import compute_player_stats, compute_stats_summary
from league.store import MemoryStore, open_store

logger = logging.getLogger(__name__)

app = FastAPI(title="Golf League")
settings = load_settings()
store = open_store(settings)
hub = LeaderboardHub(store, settings.leaderboard_debounce_seconds, settings.default_par)
_listener_stop = threading.Event()


@app.exception_handler(UpstreamFetchError)
async def upstream_error(request: Request, exc: UpstreamFetchError):
    return JSONResponse({"error": str(exc)}, status_code=502)


@app.exception_handler(InvalidInputError)
async def invalid_input(request: Request, exc: InvalidInputError):
    return JSONResponse({"error": str(exc)}, status_code=422)


@app.on_event("startup")
def startup() -> None:
    configure_logging(settings.log_level)
    if isinstance(store, MemoryStore):
        ensure_demo_league(store)
        return
    ensure_schema(settings.database_url)
    threading.Thread(
        target=listen_for_round_changes,
        args=(settings.database_url, hub, _listener_stop),
        name="round-change-listener",
        daemon=True,
    ).start()


@app.on_event("shutdown")
def shutdown() -> None:
    _listener_stop.set()
    hub.close()


@app.get("/api/events/{event_id}/leaderboard")
async def api_event_leaderboard(event_id: str, sort_by: str = "net"):
    entries = await run_in_threadpool(
        compute_event_leaderboard, store, event_id, sort_by, settings.default_par
    )
    return {"event_id": event_id, "sort_by": sort_by, "entries": [asdict(entry) for entry in entries]}


@app.get("/api/events/{event_id}/teams/leaderboard")
async def api_team_leaderboard(event_id: str, sort_by: str = "net"):
    entries = await run_in_threadpool(compute_team_leaderboard, store, event_id, sort_by)
    return {"event_id": event_id, "sort_by": sort_by, "entries": [asdict(entry) for entry in entries]}


@app.get("/api/standings")
async def api_season_standings(season: int | None = None, sort_by: str = "net", limit: int | None = None):
    limit = limit if limit is not None else settings.season_standings_limit
    entries = await run_in_threadpool(compute_season_standings, store, season, sort_by, limit)
    return {"season": season, "sort_by": sort_by, "entries": [asdict(entry) for entry in entries]}


@app.get("/api/rounds/eligibility")
async def api_round_eligibility(
    holes: int, course_rating: float | None = None, slope_rating: float | None = None
):
    return {"eligible": is_round_eligible_for_handicap(holes, course_rating, slope_rating)}


@app.post("/api/rounds/{round_id}/post")
async def api_post_round(round_id: str):
    round_record = await run_in_threadpool(store.fetch_round, round_id)
    if round_record is None:
        raise HTTPException(status_code=404, detail="Round not found")
    if not is_round_eligible_for_handicap(
        len(round_record.holes), round_record.course_rating, round_record.slope_rating
    ):
        return JSONResponse(
            {"success": False, "error": "Round is not eligible for handicap posting."},
            status_code=422,
        )
    result = await run_in_threadpool(post_round_for_handicap, store, round_record)
    if not result.success:
        return JSONResponse(asdict(result), status_code=502)
    if round_record.event_id:
        hub.notify(round_record.event_id)
    return asdict(result)


def _handicap_payload(player_id: str, result) -> dict:
    if result is None:
        return {
            "player_id": player_id,
            "handicap_index": None,
            "display": format_handicap_index(None),
            "number_of_scores_used": 0,
            "average_differential": None,
            "scores_used": [],
        }
    return {
        "player_id": player_id,
        "handicap_index": result.handicap_index,
        "display": format_handicap_index(result.handicap_index),
        "number_of_scores_used": result.number_of_scores_used,
        "average_differential": result.average_differential,
        "scores_used": [
            {**asdict(record), "differential": record.differential} for record in result.scores_used
        ],
    }


@app.get("/api/players/{player_id}/handicap")
async def api_player_handicap(player_id: str):
    if await run_in_threadpool(store.fetch_player, player_id) is None:
        raise HTTPException(status_code=404, detail="Player not found")
    result = await run_in_threadpool(compute_user_handicap, store, player_id)
    return _handicap_payload(player_id, result)


@app.get("/api/players/{player_id}/handicap/history")
async def api_handicap_history(player_id: str, limit: int | None = None):
    if await run_in_threadpool(store.fetch_player, player_id) is None:
        raise HTTPException(status_code=404, detail="Player not found")
    limit = limit if limit is not None else settings.handicap_history_limit
    history = await run_in_threadpool(fetch_handicap_history, store, player_id, limit)
    return {"player_id": player_id, "history": history}


@app.get("/api/players/{player_id}/course-handicap")
async def api_course_handicap(player_id: str, tee_box_id: str):
    value = await run_in_threadpool(course_handicap_for_tee_box, store, player_id, tee_box_id)
    return {"player_id": player_id, "tee_box_id": tee_box_id, "course_handicap": value}


@app.get("/api/players/{player_id}/stats")
async def api_player_stats(player_id: str):
    return await run_in_threadpool(compute_player_stats, store, player_id)


@app.get("/api/players/{player_id}/stats/summary")
async def api_player_stats_summary(player_id: str):
    return await run_in_threadpool(compute_stats_summary, store, player_id)


class AdminPayload(BaseModel):
    pin: str


@app.post("/api/admin/handicaps/recalculate")
async def api_recalculate_handicaps(request: Request):
    try:
        payload = AdminPayload.model_validate(await request.json())
    except ValidationError as exc:
        return JSONResponse({"error": "Invalid payload", "details": exc.errors()}, status_code=422)
    if payload.pin != settings.admin_pin:
        return JSONResponse({"error": "Invalid PIN"}, status_code=403)
    return await run_in_threadpool(recalculate_all_handicaps, store)


def _update_payload(update: LeaderboardUpdate) -> dict:
    return {
        "event_id": update.event_id,
        "sort_by": update.sort_by,
        "entries": [asdict(entry) for entry in update.entries],
        "error": update.error,
    }


@app.websocket("/ws/events/{event_id}/leaderboard")
async def leaderboard_feed(websocket: WebSocket, event_id: str, sort_by: str = "net"):
    await websocket.accept()
    loop = asyncio.get_running_loop()
    updates: asyncio.Queue = asyncio.Queue()

    def _push(update: LeaderboardUpdate) -> None:
        loop.call_soon_threadsafe(updates.put_nowait, update)

    try:
        subscription_id = await run_in_threadpool(hub.subscribe, event_id, _push, sort_by)
    except InvalidInputError as exc:
        await websocket.send_json({"event_id": event_id, "entries": [], "error": str(exc)})
        await websocket.close()
        return

    async def _forward() -> None:
        while True:
            update = await updates.get()
            await websocket.send_json(_update_payload(update))

    sender = asyncio.create_task(_forward())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Leaderboard feed for event %s disconnected", event_id)
    finally:
        hub.unsubscribe(subscription_id)
        sender.cancel()
        with suppress(asyncio.CancelledError, WebSocketDisconnect):
            await sender
