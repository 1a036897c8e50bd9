import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from league.demo_seed import ensure_demo_league
from league.leaderboard import (
    compute_event_leaderboard,
    compute_season_standings,
    compute_team_leaderboard,
)
from league.settings import load_settings
from league.store import MemoryStore, open_store


def export_event(store, event_id: str, sort_by: str, default_par: int) -> dict:
    return {
        "event_id": event_id,
        "sort_by": sort_by,
        "players": [asdict(entry) for entry in compute_event_leaderboard(store, event_id, sort_by, default_par)],
        "teams": [asdict(entry) for entry in compute_team_leaderboard(store, event_id, sort_by)],
    }


def export_season(store, season: int | None, sort_by: str, limit: int) -> dict:
    return {
        "season": season,
        "sort_by": sort_by,
        "standings": [asdict(entry) for entry in compute_season_standings(store, season, sort_by, limit)],
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Dump an event leaderboard or season standings as JSON.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--event-id", "-e", type=str, help="Event to export.")
    target.add_argument("--season", "-s", type=int, help="Calendar year of the season standings to export.")
    parser.add_argument("--sort-by", choices=("gross", "net"), default="net")
    parser.add_argument("--limit", type=int, help="Maximum standings rows (season export only).")
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Path to write the JSON export (defaults to stdout).",
    )
    args = parser.parse_args()

    settings = load_settings()
    store = open_store(settings)
    if isinstance(store, MemoryStore):
        # no database configured, export the demo league instead
        ensure_demo_league(store)
    if args.event_id:
        snapshot = export_event(store, args.event_id, args.sort_by, settings.default_par)
    else:
        limit = args.limit or settings.season_standings_limit
        snapshot = export_season(store, args.season, args.sort_by, limit)
    payload = json.dumps(snapshot, default=str, indent=2)

    if args.output:
        args.output.write_text(payload, encoding="utf-8")
        print(f"Leaderboard saved to {args.output}")
    else:
        print(payload)


if __name__ == "__main__":
    main()
