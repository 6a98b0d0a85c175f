"""
Database initialization script for the appointment store.

This script:
1. Initializes the database connection
2. Creates the bookings table
3. Reports how many bookings already exist
"""
import sys

from dotenv import load_dotenv
from loguru import logger
from sqlalchemy import func

from .config import get_settings
from .models.database import (
    BookingRecord,
    init_db,
    create_tables,
    get_db_session,
)


def initialize_database(database_url: str | None = None) -> int:
    """
    Initialize the database: create tables if they are missing.

    Args:
        database_url: Optional database connection string. If not provided,
                     the configured DATABASE_URL is used.

    Returns:
        Number of bookings already stored
    """
    engine = init_db(database_url)
    print(f"✓ Connected to database: {engine.url.render_as_string(hide_password=True)}")

    create_tables()
    print("✓ Tables created successfully:")
    print("  - bookings")

    with get_db_session() as session:
        existing = session.query(func.count(BookingRecord.id)).scalar() or 0

    print(f"✓ Existing bookings: {existing}")
    return existing


def main() -> int:
    """
    Main entry point for the database initialization script.
    """
    load_dotenv()
    settings = get_settings()

    try:
        print("Initializing database...")
        initialize_database(settings.database_url)
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        print(f"\n✗ Error during database initialization: {e}", file=sys.stderr)
        return 1

    print("\n" + "=" * 50)
    print("Database initialization complete!")
    print("=" * 50)
    return 0


if __name__ == "__main__":
    sys.exit(main())
