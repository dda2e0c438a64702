import logging
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import JSON, create_engine, event, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from tutorworld.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

# Embedded lists (options, answers, tags) are JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Database:
    """
    Owns the SQLAlchemy engine and session factory.

    Built explicitly by the application lifespan (or by tests) and passed to
    whoever needs sessions; nothing connects at import time.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def _safe_url(self) -> str:
        if settings.db_password and settings.db_password in self.url:
            return self.url.replace(settings.db_password, "****")
        return self.url

    def connect(self) -> "Database":
        if self.engine is not None:
            return self

        logger.info(f"Connecting to database: {self._safe_url()}")

        if self.is_sqlite:
            self.engine = create_engine(
                self.url,
                echo=self.echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            self.engine = create_engine(
                self.url,
                echo=self.echo,
                poolclass=QueuePool,
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_timeout=settings.db_pool_timeout,
                pool_recycle=settings.db_pool_recycle,
                connect_args={"connect_timeout": 5},
            )
            event.listen(self.engine, "connect", _set_timezone)

        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection successful ✅")
        except Exception as e:
            logger.error(f"Failed to connect to database ❌: {str(e)}")
            self.engine.dispose()
            self.engine = None
            raise

        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )
        return self

    def create_all(self) -> None:
        # Models register themselves on Base when the package is imported
        import tutorworld.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database is not connected")
        return self._session_factory()

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database ping failed: {e}")
            return False

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self._session_factory = None


def _set_timezone(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute(f"SET timezone='{settings.timezone}'")
    cursor.close()


# -----------------------
# Dependency for FastAPI
# -----------------------
def get_db(request: Request) -> Iterator[Session]:
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    except SQLAlchemyError as e:
        logger.error(f"Database error occurred: {str(e)}")
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
