"""
Database access for the Tea Trade backend

SQLAlchemy engine and session factory live on a ``Database`` object that
the application builds at start-up and disposes at shutdown; routes get a
session through the ``get_db`` dependency.
"""
import logging
import time
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Base para modelos
Base = declarative_base()


class Database:
    """
    Owns the engine and the session factory.

    Sessions are created with ``expire_on_commit=False`` so objects returned
    from a committed transaction can still be serialized by the caller.
    """

    def __init__(self, url: str, echo: bool = False, pool_pre_ping: bool = True,
                 engine: Optional[Engine] = None):
        self.url = url
        self.engine = engine or self._build_engine(url, echo, pool_pre_ping)
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @staticmethod
    def _build_engine(url: str, echo: bool, pool_pre_ping: bool) -> Engine:
        if url.startswith("sqlite"):
            # In-memory SQLite must share one connection across threads
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
                kwargs["poolclass"] = StaticPool
            return create_engine(url, echo=echo, **kwargs)

        return create_engine(
            url,
            echo=echo,
            pool_pre_ping=pool_pre_ping,  # Verify connection before use
            pool_size=10,
            max_overflow=20,
        )

    def create_all(self) -> None:
        """Create tables for every registered model"""
        # Import models so they register on Base.metadata
        from teatrade import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def ping(self) -> float:
        """
        Run a trivial query and return its latency in milliseconds.

        Raises:
            sqlalchemy.exc.SQLAlchemyError if the database is unreachable
        """
        start = time.perf_counter()
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return round((time.perf_counter() - start) * 1000, 2)

    def dispose(self) -> None:
        logger.info("Disposing database engine")
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    FastAPI dependency for a request-scoped SQLAlchemy session

    Usage:
        @router.get("/items")
        def read_items(db: Session = Depends(get_db)):
            ...
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
