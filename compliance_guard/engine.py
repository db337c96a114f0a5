"""
Wiring and lifecycle of the screening engine.

    engine = ScreeningEngine(Config())
    engine.start()          # load from store, sync if stale, start periodic sync
    verdict = engine.screen(request)
    engine.shutdown()
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .config import Config
from .database import DatabaseManager, InMemoryKeyValueStore, KeyValueStore, SqlKeyValueStore
from .models import MatchCandidate, ScreeningRequest, ScreeningVerdict, SourceList, SyncOutcome
from .services import (
    DatabaseRegistry, DataSource, MatchFinder, MatchingConfiguration, ScreeningConfiguration,
    ScreeningOrchestrator, SyncConfiguration, SyncManager, create_data_source
)
from .utils.error_handler import PersistenceError
from .utils.logger import get_logger

logger = get_logger(__name__)


class ScreeningEngine:
    """Owns the registry, store, sync manager and orchestrator of one process."""

    def __init__(self,
                 config: Optional[Config] = None,
                 registry: Optional[DatabaseRegistry] = None,
                 data_source: Optional[DataSource] = None,
                 store: Optional[KeyValueStore] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """
        Args:
            config: Application configuration (defaults if not provided)
            registry: Source list registry (built-in catalog if not provided)
            data_source: List supplier (from ``data_source.type`` if not provided)
            store: Snapshot store (SQLite file in the data directory if not provided)
            clock: Returns the current time; injectable for tests
        """
        self.config = config or Config()
        self.registry = registry or DatabaseRegistry()
        self.data_source = data_source or create_data_source(self.config)
        self._db_manager: Optional[DatabaseManager] = None
        self.store = store or self._create_store()

        self.sync_manager = SyncManager(
            self.registry,
            self.data_source,
            self.store,
            config=SyncConfiguration.from_config(self.config),
            clock=clock
        )
        self.match_finder = MatchFinder(self.registry, MatchingConfiguration.from_config(self.config))
        self.orchestrator = ScreeningOrchestrator(
            self.registry,
            self.match_finder,
            self.sync_manager,
            config=ScreeningConfiguration.from_config(self.config),
            clock=clock
        )

    def _create_store(self) -> KeyValueStore:
        try:
            self._db_manager = DatabaseManager.for_sqlite_file(
                self.config.get_database_path(), echo=bool(self.config.get('database.echo'))
            )
            return SqlKeyValueStore(self._db_manager)
        except (OSError, PersistenceError) as e:
            reason = e.message if isinstance(e, PersistenceError) else f"Cannot create database directory: {e}"
            logger.error(f"{reason}; sanctions data will not survive a restart")
            self._db_manager = None
            return InMemoryKeyValueStore()

    def start(self, periodic: Optional[bool] = None) -> None:
        """
        Rehydrate from the store, sync if stale and start the periodic trigger.

        Args:
            periodic: Start the background sync. Defaults to ``sync.auto_sync``.
        """
        self.sync_manager.load()
        self.sync_manager.ensure_fresh()

        if periodic is None:
            periodic = bool(self.config.get('sync.auto_sync', True))
        if periodic:
            self.sync_manager.start_periodic()

    def screen(self, request: ScreeningRequest) -> ScreeningVerdict:
        return self.orchestrator.screen(request)

    def force_sync(self) -> List[SyncOutcome]:
        return self.sync_manager.force_sync()

    def get_sync_status(self) -> List[SyncOutcome]:
        return self.sync_manager.get_sync_status()

    def get_databases(self) -> List[SourceList]:
        return self.sync_manager.get_databases()

    def get_fuzzy_matches(self, query: str) -> List[MatchCandidate]:
        return self.orchestrator.get_fuzzy_matches(query)

    def get_store_health(self) -> Dict[str, Any]:
        """Snapshot database health; url is None when running on an in-memory store."""
        if self._db_manager is None:
            return {'url': None, 'reachable': True, 'entries': None, 'error': None}
        return self._db_manager.check_database_health()

    def shutdown(self) -> None:
        """Stop the periodic trigger and release the database."""
        self.sync_manager.stop_periodic()
        close = getattr(self.data_source, 'close', None)
        if callable(close):
            close()
        if self._db_manager:
            self._db_manager.close()
            self._db_manager = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
