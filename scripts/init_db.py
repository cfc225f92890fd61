"""
Standalone script that creates the database schema from the ORM models.

Usage:
    python scripts/init_db.py            # uses DATABASE_URL_PROD from the environment / .env
    python scripts/init_db.py --drop     # drops every table first
"""
import argparse
import asyncio

from dotenv import load_dotenv

# Load .env into the process environment before the settings object is built.
load_dotenv()

from tutor_school_backend.common.config import settings
from tutor_school_backend.common.logger import log
from tutor_school_backend.database.engine import build_engine
from tutor_school_backend.database.models import Base


async def init_db(drop: bool = False) -> None:
    engine = build_engine(settings.database_url)
    try:
        async with engine.begin() as conn:
            if drop:
                log.warning("Dropping all tables...")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        log.info(f"Schema ready: {', '.join(sorted(Base.metadata.tables))}")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the TutorSchool database schema.")
    parser.add_argument("--drop", action="store_true", help="Drop all tables before creating them.")
    args = parser.parse_args()
    asyncio.run(init_db(drop=args.drop))
