"""
Database management layer.

Provides abstraction for database connections, sessions, and health checks.
When DATABASE_URL is unset the service runs without a persistent store:
`get_db` yields None and callers fall back to in-memory behaviour.
"""

from typing import Generator, Optional
from sqlalchemy import create_engine, text, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from cs_tutor.config import Settings, get_settings
from cs_tutor.logging_config import get_logger
from cs_tutor.models.entities import Base

logger = get_logger("database")


class DatabaseManager:
    """
    Manages database connections and sessions.

    Provides:
    - Lazy engine creation with connection pooling
    - Session factory
    - Schema creation and health checks
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.database_url)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False
            )
        return self._session_factory

    def _create_engine(self) -> Engine:
        url = str(self.settings.database_url)
        logger.info(f"Creating database engine for: {self._mask_password(url)}")

        if url.startswith("sqlite"):
            return create_engine(url, connect_args={"check_same_thread": False})

        return create_engine(
            url,
            poolclass=QueuePool,
            pool_size=self.settings.db_pool_size,
            max_overflow=self.settings.db_max_overflow,
            pool_timeout=self.settings.db_pool_timeout,
            pool_pre_ping=True,
            echo=self.settings.log_level == "DEBUG",
        )

    def get_session(self) -> Session:
        return self.session_factory()

    def init_schema(self) -> None:
        """Create any missing tables."""
        Base.metadata.create_all(bind=self.engine)

    def health_check(self) -> bool:
        """
        Check database connectivity.

        Returns:
            bool: True if database is accessible, False otherwise
        """
        if not self.is_configured:
            return False
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self):
        """Close the database engine and dispose of connections."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine closed")

    @staticmethod
    def _mask_password(url: str) -> str:
        """Mask the password in a database URL for logging."""
        if "@" in url and ":" in url:
            parts = url.split("@")
            if len(parts) == 2:
                credentials = parts[0]
                if ":" in credentials:
                    user_pass = credentials.split(":")
                    if len(user_pass) >= 3:
                        return f"{':'.join(user_pass[:-1])}:****@{parts[1]}"
        return url


# Global database manager instance
_db_manager: DatabaseManager | None = None


def get_db_manager() -> DatabaseManager:
    """Get or create the global database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


def init_db() -> bool:
    """
    Create tables at startup.

    Returns:
        True if a store is configured and reachable
    """
    manager = get_db_manager()
    if not manager.is_configured:
        logger.warning(
            "DATABASE_URL not set; running without a persistent store",
            extra={"component": "database", "event": "store_unconfigured"},
        )
        return False
    try:
        manager.init_schema()
        return True
    except SQLAlchemyError as e:
        logger.error(
            f"Database initialisation failed: {e}",
            extra={"component": "database", "event": "init_failed", "error": str(e)},
        )
        return False


def get_db() -> Generator[Optional[Session], None, None]:
    """
    Dependency injection for FastAPI endpoints.

    Yields:
        Session, or None when no store is configured
    """
    db_manager = get_db_manager()
    if not db_manager.is_configured:
        yield None
        return
    session = db_manager.get_session()
    try:
        yield session
    finally:
        session.close()
