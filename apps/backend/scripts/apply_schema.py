#!/usr/bin/env python3
"""
Apply the scraping pipeline schema.
Idempotent - safe to run multiple times.
"""
import os
import sys
import argparse
from pathlib import Path

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from dotenv import load_dotenv

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"


def main():
    parser = argparse.ArgumentParser(description="Apply scraping pipeline migrations")
    parser.add_argument("--file", help="Apply only this migration file name")
    args = parser.parse_args()

    load_dotenv()
    db_url = os.getenv("SUPABASE_DB_URL") or os.getenv("DATABASE_URL")
    if not db_url:
        print("Error: SUPABASE_DB_URL (or DATABASE_URL) environment variable is not set")
        sys.exit(1)

    files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if args.file:
        files = [f for f in files if f.name == args.file]
    if not files:
        print(f"Error: No migration files found in {MIGRATIONS_DIR}")
        sys.exit(1)

    try:
        conn = psycopg2.connect(db_url, connect_timeout=10)
        conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        print("[OK] Connected to database\n")
    except psycopg2.OperationalError as e:
        print(f"[ERROR] Connection failed: {e}")
        sys.exit(1)

    try:
        with conn.cursor() as cursor:
            for path in files:
                print(f"Applying {path.name}...")
                cursor.execute(path.read_text())
                print(f"  [OK] {path.name}")
    except psycopg2.Error as e:
        print(f"[ERROR] Migration failed: {e}")
        sys.exit(1)
    finally:
        conn.close()

    print("\nMigrations applied successfully")


if __name__ == "__main__":
    main()
