#!/usr/bin/env python3
"""
Reset database - Drop all arena tables and clear alembic version history.
WARNING: This will delete ALL data!
"""

import os
import sys
from sqlalchemy import create_engine, text

# Children first so foreign keys never block a drop
ARENA_TABLES = [
    "leaderboard_entries",
    "submissions",
    "test_cases",
    "questions",
    "contest_participants",
    "contests",
]


def get_database_url():
    """Get database URL from environment."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable not set")
        sys.exit(1)
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def reset_database():
    """Drop all tables and clear alembic version."""
    database_url = get_database_url()
    engine = create_engine(database_url)
    cascade = " CASCADE" if engine.dialect.name == "postgresql" else ""

    print("WARNING: This will drop ALL tables and delete ALL data!")
    print(f"Database: {database_url.split('@')[1] if '@' in database_url else database_url}")

    with engine.connect() as conn:
        print("\n1. Dropping tables...")

        for table in ARENA_TABLES:
            conn.execute(text(f"DROP TABLE IF EXISTS {table}{cascade}"))
            print(f"   ✓ Dropped {table}")

        # Clear alembic version history
        print("\n2. Clearing alembic version history...")
        conn.execute(text(f"DROP TABLE IF EXISTS alembic_version{cascade}"))
        print("   ✓ Cleared alembic_version")

        conn.commit()

    print("\n✓ Database reset complete!")
    print("\nNext steps:")
    print("  1. Apply migrations: python migration/migrate.py migrate")


if __name__ == "__main__":
    try:
        reset_database()
    except Exception as e:
        print(f"\nERROR: {e}")
        sys.exit(1)
