# app/scripts/prestart.py
import logging
import sys
import time

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

max_tries = 60
wait_seconds = 2


def wait_for_database(uri: str) -> bool:
    engine = create_engine(uri)
    for i in range(1, max_tries + 1):
        try:
            with engine.connect():
                logger.info("Database connection established")
                return True
        except SQLAlchemyError as e:
            logger.warning(f"Attempt {i}/{max_tries}: database not ready, retrying...")
            logger.debug(f"Connection error: {e}")
            time.sleep(wait_seconds)
    return False


def init_db(uri: str) -> None:
    """Creates missing tables; used for SQLite dev databases where migrations are not run."""
    from app.db.models_registry import Base

    engine = create_engine(uri)
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created")


def main() -> int:
    uri = settings.DATABASE_URI
    if settings.POSTGRES_PASSWORD:
        uri_censored = uri.replace(settings.POSTGRES_PASSWORD, "******")
    else:
        uri_censored = uri
    logger.info(f"Waiting for database at: {uri_censored}")

    if not wait_for_database(uri):
        logger.error("Could not connect to the database. Exiting.")
        return 1
    if uri.startswith("sqlite"):
        init_db(uri)
    return 0


if __name__ == "__main__":
    sys.exit(main())
