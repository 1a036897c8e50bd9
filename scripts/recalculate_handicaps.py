#!/usr/bin/env python3
"""Recompute every player's Handicap Index from their posted rounds."""

from __future__ import annotations

import argparse
from datetime import date

from league.posting import compute_user_handicap, recalculate_all_handicaps
from league.settings import configure_logging, load_settings
from league.store import open_store


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Recalculate handicap indexes and append a history entry for each player."
    )
    parser.add_argument("--player-id", type=str, help="Only show the computed index for this player.")
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Required to write new indexes for every player.",
    )
    args = parser.parse_args()

    settings = load_settings()
    configure_logging(settings.log_level)
    store = open_store(settings)

    if args.player_id:
        result = compute_user_handicap(store, args.player_id)
        if result is None:
            print(f"Player {args.player_id} has fewer than 5 posted rounds.")
            return
        print(
            f"Player {args.player_id}: index {result.handicap_index:.1f} "
            f"from best {result.number_of_scores_used} differential(s)."
        )
        return

    if not args.confirm:
        parser.error("This command rewrites every player's index. Re-run with --confirm to proceed.")

    summary = recalculate_all_handicaps(store, today=date.today())
    print(f"Updated {summary['success']} player(s); {summary['failed']} failed.")


if __name__ == "__main__":
    main()
