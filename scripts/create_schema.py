#!/usr/bin/env python3
"""Create the league tables and the round change trigger, then echo the DDL."""

from league.db import SCHEMA_STATEMENTS, ensure_schema
from league.settings import configure_logging, load_settings


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    if settings.database_url.startswith("memory:"):
        raise SystemExit("DATABASE_URL points at the in-memory store; set a Postgres URL first.")
    ensure_schema(settings.database_url)
    print("League schema ensured.")
    print("\nSchema DDL dump:")
    for statement in SCHEMA_STATEMENTS:
        print(statement.strip())


if __name__ == "__main__":
    main()
