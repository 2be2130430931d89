"""Database connection and session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from refledger.exceptions import StorageUnavailableError
from refledger.logging_config import get_logger
from refledger.settings import settings
from refledger.storage.models import Base

logger = get_logger(__name__)


def _load_models() -> None:
    """Import every model module so its tables register on Base.metadata."""
    import refledger.accounts.models  # noqa: F401
    import refledger.ads.models  # noqa: F401
    import refledger.earnings.models  # noqa: F401
    import refledger.referral.models  # noqa: F401


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None):
        """Initialize database connection.

        Args:
            database_url: Database URL (defaults to settings)
        """
        self.database_url = database_url or settings.database_url
        self.engine = create_engine(
            self.database_url,
            echo=settings.env == "development",
            pool_pre_ping=True,
        )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        logger.info("database_initialized", url=self.engine.url.render_as_string(hide_password=True))

    def create_tables(self) -> None:
        """Create all tables in the database."""
        _load_models()
        Base.metadata.create_all(bind=self.engine)
        logger.info("tables_created")

    def drop_tables(self) -> None:
        """Drop all tables from the database."""
        _load_models()
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("tables_dropped")

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a transactional scope for database operations.

        Connection-level failures surface as StorageUnavailableError so
        callers can tell a retriable outage from a logic error.

        Yields:
            Database session
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except OperationalError as e:
            session.rollback()
            logger.error("database_unavailable", error=str(e))
            raise StorageUnavailableError(str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# Global database instance
db = Database()
