#!/usr/bin/env python3
"""Quick script to check that every VidHub table exists in the database"""

import sys

from sqlalchemy import inspect

from vidhub.database import engine

REQUIRED_TABLES = ["identity", "sessionrecord", "video", "comment", "playlist", "subscription", "reaction"]


def check_tables():
    """Check if required tables exist"""
    inspector = inspect(engine)
    existing_tables = inspector.get_table_names()

    print(f"Database: {engine.url.render_as_string(hide_password=True)}")
    print()

    missing_tables = []
    for table in REQUIRED_TABLES:
        if table in existing_tables:
            print(f"✓ {table} exists")
        else:
            print(f"✗ {table} MISSING")
            missing_tables.append(table)

    print()
    if missing_tables:
        print("ERROR: Missing tables detected!")
        print("Run migrations with: alembic upgrade head")
        return False
    print("All required tables exist!")
    return True


if __name__ == "__main__":
    sys.exit(0 if check_tables() else 1)
