#!/usr/bin/env python3
"""
Migration Management Helper Script

This script provides a simple interface for managing the arena
database schema with Alembic.

Usage:
    python migration/migrate.py migrate     # Upgrade schema to head
    python migration/migrate.py downgrade   # Revert the last revision
    python migration/migrate.py current     # Show applied revision
    python migration/migrate.py test        # Test the connection

Run from the arena/ directory so alembic.ini is found.
"""

import os
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def print_usage():
    """Print usage information."""
    print("Migration Management Helper")
    print()
    print("Usage:")
    print("  python migration/migrate.py migrate     # Upgrade schema to head")
    print("  python migration/migrate.py downgrade   # Revert the last revision")
    print("  python migration/migrate.py current     # Show applied revision")
    print("  python migration/migrate.py test        # Test the connection")
    print()
    print("Environment Variables Required:")
    print("  DATABASE_URL          Database connection string")


def alembic_config() -> Config:
    """Build the Alembic config with absolute script location."""
    config = Config(str(ALEMBIC_INI))
    config.set_main_option(
        "script_location",
        str(ALEMBIC_INI.parent / "migration")
    )
    return config


def test_connection() -> bool:
    """Run a trivial query against DATABASE_URL."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("✗ DATABASE_URL not set")
        return False
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    engine = create_engine(database_url)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✓ Database connection OK")
        return True
    except Exception as e:
        print(f"✗ Database connection failed: {e}")
        return False
    finally:
        engine.dispose()


def main():
    """Main entry point."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command_name = sys.argv[1].lower()

    # Validate command
    if command_name not in ["migrate", "downgrade", "current", "test"]:
        print(f"Error: Unknown command '{command_name}'")
        print()
        print_usage()
        sys.exit(1)

    try:
        if command_name == "test":
            print("Testing database connection...")
            print()
            sys.exit(0 if test_connection() else 1)

        config = alembic_config()

        if command_name == "migrate":
            print("Running schema migrations...")
            print()
            command.upgrade(config, "head")
        elif command_name == "downgrade":
            print("Reverting last migration...")
            print()
            command.downgrade(config, "-1")
        elif command_name == "current":
            command.current(config, verbose=True)

        sys.exit(0)

    except KeyboardInterrupt:
        print()
        print("Operation cancelled by user")
        sys.exit(130)
    except Exception as e:
        print()
        print(f"Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
