"""
Key-value stores used to persist sanctions snapshots and sync metadata.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from .manager import DatabaseManager
from ..models import KeyValueEntry
from ..utils.error_handler import PersistenceError, ErrorContext

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal byte-oriented store. Implementations raise PersistenceError on failure."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes, or None when the key is absent."""

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        """Store value under key, replacing any previous value."""


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._data: Dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise PersistenceError(f"Store values must be bytes, got {type(value).__name__} for '{key}'")
        with self._lock:
            self._data[key] = bytes(value)

    def keys(self):
        with self._lock:
            return list(self._data)


class SqlKeyValueStore(KeyValueStore):
    """Store backed by the key_value_entries table."""

    def __init__(self, database_manager: DatabaseManager):
        self.db_manager = database_manager
        if not self.db_manager.is_initialized and not self.db_manager.initialize_database():
            raise PersistenceError(f"Could not initialize database at {self.db_manager.database_url}")

    def _failure(self, operation: str, key: str, error: SQLAlchemyError) -> PersistenceError:
        return PersistenceError(
            f"Store {operation} of '{key}' failed: {error}",
            context=ErrorContext(operation=operation, component="sql_key_value_store",
                                 additional_data={"key": key}),
            original_exception=error
        )

    def get(self, key: str) -> Optional[bytes]:
        try:
            with self.db_manager.session_scope() as session:
                entry = session.get(KeyValueEntry, key)
                return None if entry is None else bytes(entry.value)
        except SQLAlchemyError as e:
            raise self._failure("get", key, e)

    def put(self, key: str, value: bytes) -> None:
        try:
            with self.db_manager.session_scope() as session:
                session.merge(KeyValueEntry(key=key, value=bytes(value)))
                session.commit()
        except SQLAlchemyError as e:
            raise self._failure("put", key, e)
        logger.debug(f"Stored {len(value)} bytes under '{key}'")
