#!/usr/bin/env python3
"""
Check database connectivity and run Alembic migrations to head.
"""
import logging
import os
import subprocess
import sys

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger("run_migration")


def run_migration() -> bool:
    """Run Alembic migrations"""
    from app.config.settings import settings

    database_url = os.getenv("DATABASE_URL") or (str(settings.DATABASE_URL) if settings.DATABASE_URL else None)
    if not database_url:
        logger.error("DATABASE_URL is not configured")
        return False

    try:
        engine = create_engine(database_url)
        with engine.connect() as conn:
            version = conn.execute(text("SELECT version()")).scalar()
            logger.info("Connected to: %s", version)
    except SQLAlchemyError as e:
        logger.error("Failed to connect to the database: %s", e)
        return False

    logger.info("Running Alembic migrations...")
    result = subprocess.run(
        ["alembic", "upgrade", "head"],
        capture_output=True,
        text=True,
        cwd=os.getcwd(),
        env={**os.environ, "DATABASE_URL": database_url},
    )
    if result.returncode != 0:
        logger.error("Migration failed:\n%s\n%s", result.stdout, result.stderr)
        return False

    logger.info("Migrations completed successfully.\n%s", result.stdout)
    return True


if __name__ == "__main__":
    # Set DATABASE_URL from command line argument if provided
    if len(sys.argv) > 1:
        os.environ["DATABASE_URL"] = sys.argv[1]

    sys.exit(0 if run_migration() else 1)
