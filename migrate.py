#!/usr/bin/env python3
"""
Apply database migrations for the Subscriptions API.

The API applies pending migrations on startup unless ``SHOULD_MIGRATE``
is disabled; this script runs the same migrations ahead of time, for
example from a deployment pipeline.

Usage:
    python migrate.py                      # database from DATABASE_URL
    python migrate.py --db ./subscriptions.db
    python migrate.py --status             # only report the schema version
"""

import argparse
import sqlite3
import sys

from subscriptions_api.app.core.db import (
    MIGRATIONS,
    current_version,
    get_database_path,
    init_db,
    wait_for_database,
)
from subscriptions_api.app.core.logging_config import setup_logging


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Apply Subscriptions API migrations (SQLite).")
    ap.add_argument("--db", help="Path to SQLite DB file. Defaults to DATABASE_URL.")
    ap.add_argument("--status", action="store_true", help="Print the schema version without migrating.")
    ap.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
    args = ap.parse_args(argv)

    setup_logging(args.log_level)
    latest = MIGRATIONS[-1][0]

    try:
        wait_for_database(database_url=args.db)
        if args.status:
            version = current_version(args.db)
            print(f"[=] {get_database_path(args.db)}: version {version} of {latest}")
            return 0
        version = init_db(args.db)
    except sqlite3.Error as exc:
        print(f"[!] Migration failed: {exc}", file=sys.stderr)
        return 1

    print(f"[+] {get_database_path(args.db)} migrated to version {version}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
