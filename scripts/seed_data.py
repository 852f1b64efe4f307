"""
Data Seeder for timeledger.
Populates the configured database with preview data for demos.

Usage:
    python scripts/seed_data.py [--reset]
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from timeledger.infra.config import configure_logging, get_config
from timeledger.infra.db import get_engine
from timeledger.services.data_services import DataServices
from timeledger.services.sample_data import populate_preview


def reset_database(db_url: str):
    """Delete the existing SQLite file to ensure a fresh seed"""
    if "sqlite" not in db_url:
        print(f"Not an SQLite URL, leaving it alone: {db_url}")
        return

    db_path = Path(db_url.split("///")[-1])
    if db_path.exists():
        print(f"Removing existing database at: {db_path}")
        try:
            db_path.unlink()
            print("Database removed.")
        except PermissionError:
            print("ERROR: Could not remove database. It might be in use.")
            sys.exit(1)
    else:
        print(f"No existing database found at: {db_path}")


async def seed(reset: bool):
    config = get_config()
    configure_logging(config.log_level)
    db_url = config.get_db_url()
    if reset:
        reset_database(db_url)

    engine = get_engine(db_url)
    await engine.create_tables()

    async with DataServices.open(
        engine,
        defaults=config.defaults,
        enforce_single_timer=config.enforce_single_timer
    ) as services:
        if await services.client_repo.has_clients():
            print("Database already has clients, skipping. Use --reset to start over.")
            return
        created = await populate_preview(services)
        print(f"Seeding complete: {created}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed(reset="--reset" in sys.argv))
