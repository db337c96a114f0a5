"""
Synchronization of sanctions lists from a data source into the registry.

Each cycle moves every list to ``syncing``, fetches it with a bounded timeout
and either publishes the new entity set (``synced``) or keeps the previous
one and records the failure (``error``). Lists are fetched concurrently and
independently. After each cycle the entity sets and sync metadata are written
to the key-value store, and they are read back by ``load()`` on startup.
"""
import json
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional

from .data_source import DataSource
from .registry import DatabaseRegistry
from ..database.store import KeyValueStore
from ..models import ListedEntity, SourceList, SyncOutcome, SyncState
from ..utils.concurrency import DeadlineExceeded, SingleFlight, call_with_timeout
from ..utils.error_handler import (
    DataParsingError, DataSourceError, ErrorContext, ErrorHandler, SyncStateError
)
from ..utils.logger import get_logger, get_audit_logger, log_performance

logger = get_logger(__name__)
audit_logger = get_audit_logger()

_FULL_CYCLE_KEY = "__sync_all__"
_FRESHNESS_KEY = "__ensure_fresh__"


@dataclass
class SyncConfiguration:
    """Timing and storage settings for the sync manager."""
    freshness_hours: float = 24
    interval_hours: float = 24
    fetch_timeout_seconds: Optional[float] = 30
    key_prefix: str = 'complianceguard'

    @classmethod
    def from_config(cls, config) -> "SyncConfiguration":
        defaults = cls()
        return cls(
            freshness_hours=float(config.get('sync.freshness_hours', defaults.freshness_hours)),
            interval_hours=float(config.get('sync.interval_hours', defaults.interval_hours)),
            fetch_timeout_seconds=config.get('sync.fetch_timeout_seconds', defaults.fetch_timeout_seconds),
            key_prefix=config.get('storage.key_prefix', defaults.key_prefix),
        )


class SyncManager:
    """
    Owns every sync state transition of the registry's lists.

    Features:
    - concurrent per-list fetch with a bounded timeout, no retry within a cycle
    - stale data kept when a fetch fails
    - single-flight: concurrent requests for the same list or full cycle share
      one execution
    - snapshot persistence after each cycle and rehydration on load()
    - optional background thread re-running the cycle on a fixed interval
    """

    def __init__(self,
                 registry: DatabaseRegistry,
                 data_source: DataSource,
                 store: KeyValueStore,
                 config: Optional[SyncConfiguration] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 error_handler: Optional[ErrorHandler] = None):
        """
        Args:
            registry: Registry whose lists are synchronized
            data_source: Supplier of list contents
            store: Persistent key-value store for snapshots
            config: Sync configuration (defaults if not provided)
            clock: Returns the current time; injectable for tests
            error_handler: Handler used to log fetch and store failures
        """
        self.registry = registry
        self.data_source = data_source
        self.store = store
        self.config = config or SyncConfiguration()
        self.clock = clock
        self.error_handler = error_handler or ErrorHandler(logger)

        self._single_flight = SingleFlight()
        self._state_lock = threading.Lock()
        self._persist_lock = threading.Lock()
        self._last_sync: Optional[datetime] = None
        self._loaded = False

        self._stop_event = threading.Event()
        self._scheduler_thread: Optional[threading.Thread] = None

    # ==================== Storage keys ====================

    def _key(self, name: str) -> str:
        return f"{self.config.key_prefix}_{name}"

    def _entities_key(self, list_name: str) -> str:
        return f"{self._key('sanctions_data')}:{list_name}"

    # ==================== Persistence ====================

    @property
    def last_sync(self) -> Optional[datetime]:
        """Completion time of the last full sync cycle."""
        with self._state_lock:
            return self._last_sync

    def load(self) -> None:
        """
        Restore entity sets, list metadata and the last sync time from the store.

        Missing or unreadable keys are treated as absent. A list stored while
        ``syncing`` is restored as ``error``. If a list claims to be synced but
        its entity set cannot be restored, the last sync time is dropped so the
        next freshness check resyncs.
        """
        status_data = self._read_json(self._key('sync_status'))
        if not isinstance(status_data, dict):
            status_data = {}

        complete = True
        restored = 0
        for name in self.registry.names():
            fields = {}
            status = status_data.get(name)
            if isinstance(status, dict):
                try:
                    fields = SourceList.parse_status_dict(status)
                except (TypeError, ValueError) as e:
                    logger.warning(f"Ignoring stored sync status for {name}: {e}")

            entities = self._load_entities(name)

            if fields.get('sync_state') == SyncState.SYNCING:
                fields['sync_state'] = SyncState.ERROR
                fields['error_message'] = "Sync interrupted before completion"

            if entities is not None:
                fields['entity_count'] = len(entities)
                restored += 1
            elif fields:
                fields['entity_count'] = 0
                if fields['sync_state'] == SyncState.SYNCED:
                    complete = False

            if fields or entities is not None:
                self.registry.update(name, entities=entities, **fields)

        last_sync = None
        stored_last_sync = self._read_json(self._key('last_sync'))
        if isinstance(stored_last_sync, str) and stored_last_sync:
            try:
                last_sync = datetime.fromisoformat(stored_last_sync)
            except ValueError:
                logger.warning(f"Ignoring malformed last sync time: {stored_last_sync!r}")

        with self._state_lock:
            self._last_sync = last_sync if complete else None
            self._loaded = True

        logger.info(f"Restored {restored} of {len(self.registry)} sanctions lists from store "
                    f"(last sync: {last_sync.isoformat() if last_sync else 'never'})")

    def _load_entities(self, name: str) -> Optional[List[ListedEntity]]:
        records = self._read_json(self._entities_key(name))
        if records is None:
            return None
        if not isinstance(records, list):
            logger.warning(f"Ignoring stored entity set for {name}: not a list")
            return None
        try:
            return [ListedEntity.from_dict(record, source=name) for record in records]
        except DataParsingError as e:
            logger.warning(f"Ignoring stored entity set for {name}: {e.message}")
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring stored entity set for {name}: {type(e).__name__}: {e}")
        return None

    def _read_json(self, key: str) -> Any:
        try:
            raw = self.store.get(key)
        except Exception as e:
            self.error_handler.handle_error(e, ErrorContext(
                operation="load", component="sync_manager", additional_data={"key": key}
            ))
            return None

        if raw is None:
            return None
        try:
            return json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Ignoring corrupt store entry '{key}': {e}")
            return None

    def persist(self) -> bool:
        """
        Write every entity set, the sync metadata and the last sync time.

        Returns:
            True if everything was written. Failures are logged, never raised.
        """
        with self._persist_lock:
            status_data = {}
            try:
                for name in self.registry.names():
                    source_list, entities = self.registry.snapshot(name)
                    status_data[name] = source_list.to_status_dict()
                    self.store.put(self._entities_key(name), _encode([e.to_dict() for e in entities]))

                self.store.put(self._key('sync_status'), _encode(status_data))
                last_sync = self.last_sync
                self.store.put(self._key('last_sync'), _encode(last_sync.isoformat() if last_sync else None))
            except Exception as e:
                self.error_handler.handle_error(e, ErrorContext(operation="persist", component="sync_manager"))
                return False

        logger.debug("Sanctions snapshot persisted")
        return True

    # ==================== Sync cycles ====================

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    @log_performance(logger, "sync_all")
    def sync_all(self) -> List[SyncOutcome]:
        """
        Run one sync cycle over every registered list.

        Returns:
            One outcome per list, in registration order. A call made while a
            cycle is already running returns that cycle's outcomes.
        """
        self._ensure_loaded()
        return self._single_flight.do(_FULL_CYCLE_KEY, self._run_cycle)

    def _run_cycle(self) -> List[SyncOutcome]:
        names = self.registry.names()
        logger.info(f"Starting sync of {len(names)} sanctions lists")

        with ThreadPoolExecutor(max_workers=max(1, len(names)), thread_name_prefix="sanctions-sync") as executor:
            futures = [executor.submit(self.sync_list, name) for name in names]
            outcomes = [future.result() for future in futures]

        with self._state_lock:
            self._last_sync = self.clock()

        self.persist()

        failed = [outcome.list_name for outcome in outcomes if not outcome.succeeded]
        if failed:
            logger.warning(f"Sync completed with failures: {', '.join(failed)}")
        else:
            logger.info(f"Successfully synced {len(outcomes)} sanctions lists")
        return outcomes

    def sync_list(self, name: str) -> SyncOutcome:
        """Sync a single list; joins an in-flight sync of the same list."""
        return self._single_flight.do(f"list:{name}", self._sync_list, name)

    def _sync_list(self, name: str) -> SyncOutcome:
        started = self.clock()
        try:
            self._transition(name, SyncState.SYNCING, last_attempt=started)
        except SyncStateError as e:
            self.error_handler.handle_error(e)
            current = self.registry.get(name)
            return SyncOutcome(name, current.sync_state, started, current.entity_count, e.message)

        context = ErrorContext(operation="sync_list", component="sync_manager", additional_data={"source": name})
        timeout = self.config.fetch_timeout_seconds or None

        try:
            fetched = call_with_timeout(self.data_source.fetch, timeout, name, thread_name=f"fetch-{name}")
            entities = self._own_entities(name, fetched)
        except DeadlineExceeded as e:
            error = self.error_handler.handle_error(
                DataSourceError(f"Timed out after {e.timeout} seconds fetching {name}", context=context)
            )
            return self._record_failure(name, error.message)
        except Exception as e:
            error = self.error_handler.handle_error(e, context)
            return self._record_failure(name, error.message)

        finished = self.clock()
        updated = self._transition(
            name, SyncState.SYNCED,
            entities=entities,
            entity_count=len(entities),
            last_updated=finished,
            error_message=None
        )
        logger.info(f"Synced {name}: {updated.entity_count} entities")
        return SyncOutcome(name, SyncState.SYNCED, finished, updated.entity_count)

    def _record_failure(self, name: str, message: str) -> SyncOutcome:
        updated = self._transition(name, SyncState.ERROR, error_message=message)
        logger.warning(f"Sync failed for {name}, keeping {updated.entity_count} cached entities")
        return SyncOutcome(name, SyncState.ERROR, self.clock(), updated.entity_count, message)

    def _transition(self, name: str, target: SyncState, entities=None, **changes) -> SourceList:
        current = self.registry.get(name).sync_state
        if not current.can_transition_to(target):
            raise SyncStateError(f"Illegal sync transition for {name}: {current.value} -> {target.value}")
        return self.registry.update(name, entities=entities, sync_state=target, **changes)

    @staticmethod
    def _own_entities(name: str, fetched) -> List[ListedEntity]:
        """Validate fetched records and stamp them with the list name."""
        if fetched is None:
            raise DataSourceError(f"Data source returned nothing for {name}")

        entities = []
        for item in fetched:
            if isinstance(item, dict):
                item = ListedEntity.from_dict(item, source=name)
            elif not isinstance(item, ListedEntity):
                raise DataParsingError(f"Unexpected record type from {name}: {type(item).__name__}")
            elif item.source != name:
                item = replace(item, source=name)
            entities.append(item)
        return entities

    # ==================== Freshness ====================

    def is_stale(self) -> bool:
        last_sync = self.last_sync
        if last_sync is None:
            return True
        return self.clock() - last_sync >= timedelta(hours=self.config.freshness_hours)

    def ensure_fresh(self) -> bool:
        """
        Sync when never synced or older than the freshness threshold.

        Returns:
            True if this call ran (or joined) a sync cycle.
        """
        self._ensure_loaded()
        if not self.is_stale():
            return False
        return self._single_flight.do(_FRESHNESS_KEY, self._refresh_if_stale)

    def _refresh_if_stale(self) -> bool:
        # Another caller may have finished a cycle while this one waited
        if not self.is_stale():
            return False
        self.sync_all()
        return True

    def force_sync(self) -> List[SyncOutcome]:
        """Manual trigger with the same contract as sync_all()."""
        audit_logger.info("Manual sanctions sync requested")
        outcomes = self.sync_all()
        audit_logger.info("Manual sanctions sync finished: " + ", ".join(
            f"{outcome.list_name}={outcome.status.value}" for outcome in outcomes
        ))
        return outcomes

    # ==================== Status ====================

    def get_sync_status(self) -> List[SyncOutcome]:
        """Current state of each list without syncing."""
        return [
            SyncOutcome(
                source_list.name,
                source_list.sync_state,
                source_list.last_updated,
                source_list.entity_count,
                source_list.error_message
            )
            for source_list in self.registry.lists()
        ]

    def get_databases(self) -> List[SourceList]:
        return self.registry.lists()

    # ==================== Periodic trigger ====================

    def start_periodic(self, interval_hours: Optional[float] = None) -> None:
        """Start re-running sync_all() on a background thread every interval."""
        if self.is_running():
            logger.warning("Periodic sync is already running")
            return

        hours = self.config.interval_hours if interval_hours is None else interval_hours
        interval = timedelta(hours=hours).total_seconds()

        self._stop_event.clear()
        self._scheduler_thread = threading.Thread(
            target=self._scheduler_loop,
            args=(interval,),
            name="sanctions-sync-scheduler",
            daemon=True
        )
        self._scheduler_thread.start()
        logger.info(f"Periodic sanctions sync started with {hours}h interval")

    def _scheduler_loop(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            self.run_scheduled_cycle()

    def run_scheduled_cycle(self) -> List[SyncOutcome]:
        """One iteration of the periodic trigger."""
        try:
            return self.sync_all()
        except Exception as e:
            logger.error(f"Scheduled sync failed: {e}", exc_info=True)
            return []

    def stop_periodic(self, timeout: float = 5.0) -> None:
        """Stop the periodic trigger; an in-progress cycle is allowed to finish."""
        self._stop_event.set()
        thread = self._scheduler_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._scheduler_thread = None
        logger.info("Periodic sanctions sync stopped")

    def is_running(self) -> bool:
        return self._scheduler_thread is not None and self._scheduler_thread.is_alive()


def _encode(value: Any) -> bytes:
    return json.dumps(value, ensure_ascii=False).encode('utf-8')
