"""
SQLAlchemy engine and session lifecycle for the snapshot store.
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional, Union

from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..models import Base, KeyValueEntry

logger = logging.getLogger(__name__)

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


class DatabaseManager:
    """
    Owns the engine behind ``SqlKeyValueStore``.

    Nothing is opened until ``initialize_database`` runs. Sessions are
    thread-scoped because the sync cycle writes from worker threads.
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        self.database_url = database_url or IN_MEMORY_URLS[0]
        self.echo = echo
        self.engine = None
        self.Session = None

    @classmethod
    def for_sqlite_file(cls, db_path: Union[str, Path], echo: bool = False) -> "DatabaseManager":
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return cls(f"sqlite:///{db_path}", echo=echo)

    @property
    def is_initialized(self) -> bool:
        return self.engine is not None

    def _engine_options(self) -> Dict[str, Any]:
        if not self.database_url.startswith("sqlite"):
            return {"pool_pre_ping": True}
        options = {"connect_args": {"check_same_thread": False}}
        if self.database_url in IN_MEMORY_URLS:
            # every thread must share the single in-memory connection
            options["poolclass"] = StaticPool
        return options

    def initialize_database(self) -> bool:
        """Create the engine and the store table; False when the database is unusable."""
        try:
            engine = create_engine(self.database_url, echo=self.echo, **self._engine_options())
            Base.metadata.create_all(engine)
        except SQLAlchemyError as e:
            logger.error(f"Could not open snapshot database {self.database_url}: {e}")
            return False

        self.engine = engine
        self.Session = scoped_session(sessionmaker(bind=engine))
        logger.info(f"Snapshot database ready at {self.database_url}")
        return True

    def get_session(self):
        if self.Session is None:
            raise RuntimeError("Database not initialized. Call initialize_database() first.")
        return self.Session()

    @contextmanager
    def session_scope(self):
        """Yield a session; roll back if the block raises, always close."""
        session = self.get_session()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def check_database_health(self) -> Dict[str, Any]:
        """Report whether the store table exists and how many keys it holds."""
        health = {'url': self.database_url, 'reachable': False, 'entries': None, 'error': None}
        if not self.is_initialized:
            health['error'] = "not initialized"
            return health

        try:
            if KeyValueEntry.__tablename__ not in inspect(self.engine).get_table_names():
                health['error'] = f"table {KeyValueEntry.__tablename__} is missing"
                return health
            with self.session_scope() as session:
                health['entries'] = session.query(KeyValueEntry).count()
            health['reachable'] = True
        except SQLAlchemyError as e:
            logger.error(f"Snapshot database health check failed: {e}")
            health['error'] = str(e)
        return health

    def close(self):
        if self.Session is not None:
            self.Session.remove()
            self.Session = None
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            logger.info("Snapshot database closed")
