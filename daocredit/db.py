# daocredit/db.py
"""Database session and connection management"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from daocredit.models.db import Base

logger = logging.getLogger(__name__)

class Database:
    """Database connection and session manager"""

    def __init__(self):
        """Initialize database manager state"""
        self._engine = None
        self._SessionLocal = None

    def init(self, connection_string: str, echo: bool = False) -> None:
        """
        Initialize database connection and create tables.

        This should be called once at application startup.

        Args:
            connection_string: SQLAlchemy URL of the database
            echo: Log emitted SQL

        Raises:
            SQLAlchemyError: If database initialization fails
        """
        try:
            engine_args = {'echo': echo}
            if connection_string.startswith('sqlite'):
                engine_args['connect_args'] = {'check_same_thread': False}
                # In-memory databases live in one connection shared by all sessions
                if connection_string in ('sqlite://', 'sqlite:///:memory:'):
                    engine_args['poolclass'] = StaticPool

            self._engine = create_engine(connection_string, **engine_args)
            Base.metadata.create_all(self._engine)
            self._SessionLocal = sessionmaker(bind=self._engine)
            logger.info("Database initialized successfully")

        except SQLAlchemyError as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of database operations.

        Usage:
            with db.session() as session:
                session.add(some_object)

        The session commits when the block exits normally and rolls back
        when it raises.

        Yields:
            Session: SQLAlchemy database session

        Raises:
            RuntimeError: If database not initialized
            SQLAlchemyError: If database operations fail
        """
        if not self._SessionLocal:
            raise RuntimeError("Database not initialized. Call init() first.")

        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """
        Clean up database connections.
        Should be called during application shutdown.
        """
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._SessionLocal = None

def open_database(connection_string: str, echo: bool = False) -> Database:
    """Create and initialize a Database"""
    database = Database()
    database.init(connection_string, echo=echo)
    return database
