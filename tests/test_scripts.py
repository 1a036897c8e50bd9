import json
import runpy
import sys
from pathlib import Path

SCRIPTS_DIR = Path(__file__).resolve().parents[1] / "scripts"


def test_export_uses_demo_league_without_database(monkeypatch, capsys):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(sys, "argv", ["export_leaderboard.py", "--event-id", "demo-event", "--sort-by", "gross"])

    runpy.run_path(str(SCRIPTS_DIR / "export_leaderboard.py"), run_name="__main__")

    snapshot = json.loads(capsys.readouterr().out)
    assert snapshot["event_id"] == "demo-event"
    assert len(snapshot["players"]) == 6
    assert snapshot["players"][0]["position"] == 1
    assert {team["team_name"] for team in snapshot["teams"]} == {"Birdie Hunters", "Sand Savers"}
