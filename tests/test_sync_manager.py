"""
Tests for list synchronization, persistence and the periodic trigger.
"""

import json
import threading
import time

from compliance_guard.database import InMemoryKeyValueStore
from compliance_guard.models import SourceList, SyncState
from compliance_guard.services import DatabaseRegistry, SyncConfiguration, SyncManager
from compliance_guard.utils.error_handler import DataSourceError, PersistenceError

from conftest import KIM, make_entity, wait_for


def fresh_registry():
    return DatabaseRegistry([
        SourceList(name='List A', region='Test', description='First test list'),
        SourceList(name='List B', region='Test', description='Second test list'),
    ])


class FailingStore(InMemoryKeyValueStore):
    def put(self, key, value):
        raise PersistenceError(f"disk full writing {key}")


class TestSyncCycle:
    """Tests for full sync cycles"""

    def test_all_lists_synced(self, sync_manager, registry, clock):
        """Test a successful cycle publishes every list"""
        outcomes = sync_manager.sync_all()

        assert [outcome.list_name for outcome in outcomes] == ['List A', 'List B']
        assert all(outcome.succeeded for outcome in outcomes)
        assert registry.get('List A').sync_state == SyncState.SYNCED
        assert registry.get('List A').entity_count == 1
        assert registry.get('List A').last_updated == clock()
        assert [entity.id for entity in registry.entities('List B')] == ['un-001']
        assert registry.entities('List B')[0].source == 'List B'
        assert sync_manager.last_sync == clock()

    def test_failure_is_isolated(self, sync_manager, registry, source):
        """Test one failing list keeps its data while the other updates"""
        sync_manager.sync_all()
        source.failures['List A'] = DataSourceError("feed unavailable")
        source.data['List B'] = [KIM, make_entity('un-002', 'RI PYONG CHOL')]

        outcomes = sync_manager.sync_all()

        by_name = {outcome.list_name: outcome for outcome in outcomes}
        assert by_name['List A'].status == SyncState.ERROR
        assert by_name['List A'].entity_count == 1
        assert by_name['List A'].error_message == "feed unavailable"
        assert by_name['List B'].status == SyncState.SYNCED
        assert by_name['List B'].entity_count == 2

        assert [entity.id for entity in registry.entities('List A')] == ['hmt-001']
        assert registry.get('List A').error_message == "feed unavailable"

    def test_first_sync_failure(self, sync_manager, registry, source):
        """Test a list failing its first sync has no entities"""
        source.failures['List A'] = ConnectionError("refused")

        sync_manager.sync_all()

        source_list = registry.get('List A')
        assert source_list.sync_state == SyncState.ERROR
        assert source_list.entity_count == 0
        assert "refused" in source_list.error_message

    def test_error_cleared_after_success(self, sync_manager, registry, source):
        """Test a later successful sync clears the error"""
        source.failures['List A'] = DataSourceError("feed unavailable")
        sync_manager.sync_all()
        del source.failures['List A']

        sync_manager.sync_all()

        assert registry.get('List A').sync_state == SyncState.SYNCED
        assert registry.get('List A').error_message is None

    def test_fetch_timeout(self, registry, source, store, clock):
        """Test a hung fetch fails only its own list"""
        source.hang.add('List A')
        manager = SyncManager(registry, source, store, SyncConfiguration(fetch_timeout_seconds=0.2), clock=clock)

        outcomes = manager.sync_all()

        assert outcomes[0].status == SyncState.ERROR
        assert "Timed out" in outcomes[0].error_message
        assert outcomes[1].status == SyncState.SYNCED

    def test_source_timeout_error_not_a_deadline(self, sync_manager, source):
        """Test a TimeoutError raised by the source is reported as the source's own error"""
        source.failures['List A'] = TimeoutError("read timed out")

        outcome = sync_manager.sync_list('List A')

        assert outcome.status == SyncState.ERROR
        assert outcome.error_message == "TimeoutError: read timed out"

    def test_none_from_source(self, sync_manager, registry, source):
        """Test a source returning nothing is a failure"""
        source.fetch = lambda name: None

        outcome = sync_manager.sync_list('List A')

        assert outcome.status == SyncState.ERROR
        assert "returned nothing" in outcome.error_message

    def test_dict_records_accepted(self, sync_manager, registry, source):
        """Test raw records are parsed and stamped with the list name"""
        source.data['List A'] = [{'id': 'a-1', 'name': 'ACME', 'source': 'elsewhere'}]

        sync_manager.sync_all()

        entity = registry.entities('List A')[0]
        assert entity.name == 'ACME'
        assert entity.source == 'List A'

    def test_wrongly_typed_record_fails_its_list(self, sync_manager, registry, source):
        """Test a record with a non-text country puts only its own list in error"""
        source.data['List A'] = [{'id': 'a-1', 'name': 'ACME', 'country': 7}]

        outcomes = sync_manager.sync_all()

        assert outcomes[0].status == SyncState.ERROR
        assert "country" in outcomes[0].error_message
        assert outcomes[1].status == SyncState.SYNCED
        assert registry.entities('List A') == ()

    def test_illegal_transition_reported(self, sync_manager, registry, source):
        """Test a list already syncing is not synced again"""
        registry.update('List A', sync_state=SyncState.SYNCING)

        outcome = sync_manager.sync_list('List A')

        assert outcome.status == SyncState.SYNCING
        assert "Illegal sync transition" in outcome.error_message
        assert source.call_count('List A') == 0

    def test_concurrent_calls_share_one_fetch(self, registry, source, store, clock):
        """Test a sync request joining an in-flight sync of the same list"""
        source.hang.add('List A')
        manager = SyncManager(registry, source, store, SyncConfiguration(fetch_timeout_seconds=5), clock=clock)
        results = []

        def run():
            results.append(manager.sync_list('List A'))

        threads = [threading.Thread(target=run) for _ in range(2)]
        threads[0].start()
        assert wait_for(lambda: source.call_count('List A') == 1)
        threads[1].start()
        time.sleep(0.2)
        source.release.set()
        for thread in threads:
            thread.join(5)

        assert source.call_count('List A') == 1
        assert len(results) == 2
        assert results[0] is results[1]

    def test_status_without_sync(self, sync_manager):
        """Test status reporting never syncs"""
        statuses = sync_manager.get_sync_status()

        assert [status.status for status in statuses] == [SyncState.NEVER, SyncState.NEVER]
        assert all(status.entity_count == 0 for status in statuses)

    def test_force_sync(self, sync_manager, source):
        """Test the manual trigger runs a full cycle"""
        sync_manager.sync_all()
        outcomes = sync_manager.force_sync()

        assert len(outcomes) == 2
        assert source.call_count() == 4


class TestFreshness:
    """Tests for staleness checks"""

    def test_stale_when_never_synced(self, sync_manager):
        """Test a manager without a sync is stale"""
        assert sync_manager.is_stale()

    def test_ensure_fresh_runs_at_most_once(self, sync_manager, source):
        """Test back-to-back freshness checks trigger one cycle"""
        assert sync_manager.ensure_fresh() is True
        assert sync_manager.ensure_fresh() is False
        assert source.call_count() == 2

    def test_failed_lists_do_not_force_resync(self, sync_manager, source):
        """Test a cycle with failures still counts as the last sync"""
        source.failures['List A'] = DataSourceError("feed unavailable")

        sync_manager.ensure_fresh()
        sync_manager.ensure_fresh()

        assert source.call_count() == 2

    def test_resync_after_threshold(self, sync_manager, source, clock):
        """Test data older than the freshness window is refreshed"""
        sync_manager.ensure_fresh()
        clock.advance(hours=23)
        assert sync_manager.ensure_fresh() is False

        clock.advance(hours=1)
        assert sync_manager.ensure_fresh() is True
        assert source.call_count() == 4


class TestPersistence:
    """Tests for snapshot persistence and rehydration"""

    def test_keys_written(self, sync_manager, store):
        """Test a cycle writes entity sets and metadata"""
        sync_manager.sync_all()

        keys = set(store.keys())
        assert 'complianceguard_sanctions_data:List A' in keys
        assert 'complianceguard_sanctions_data:List B' in keys
        assert 'complianceguard_sync_status' in keys
        assert 'complianceguard_last_sync' in keys

        status = json.loads(store.get('complianceguard_sync_status').decode('utf-8'))
        assert status['List A']['status'] == 'synced'
        assert status['List A']['entity_count'] == 1

    def test_custom_key_prefix(self, registry, source, store, clock):
        """Test store keys use the configured prefix"""
        manager = SyncManager(registry, source, store, SyncConfiguration(key_prefix='acme'), clock=clock)
        manager.sync_all()

        assert store.get('acme_sync_status') is not None

    def test_rehydrate(self, sync_manager, source, store, clock):
        """Test a new manager restores the previous session"""
        sync_manager.sync_all()

        registry = fresh_registry()
        restored = SyncManager(registry, source, store, clock=clock)
        restored.load()

        assert registry.get('List A').sync_state == SyncState.SYNCED
        assert registry.get('List A').entity_count == 1
        assert [entity.id for entity in registry.entities('List A')] == ['hmt-001']
        assert restored.last_sync == clock()
        assert restored.ensure_fresh() is False
        assert source.call_count() == 2

    def test_syncing_restored_as_error(self, store, source, clock):
        """Test a sync interrupted by shutdown is not restored as in progress"""
        store.put('complianceguard_sync_status', json.dumps({
            'List A': {'status': 'syncing', 'entity_count': 0},
        }).encode('utf-8'))

        registry = fresh_registry()
        SyncManager(registry, source, store, clock=clock).load()

        assert registry.get('List A').sync_state == SyncState.ERROR
        assert registry.get('List A').error_message == "Sync interrupted before completion"

    def test_corrupt_entries_treated_as_absent(self, store, source, clock):
        """Test unreadable store entries do not break loading"""
        store.put('complianceguard_sync_status', b'{not json')
        store.put('complianceguard_sanctions_data:List A', b'\xff\xfe')
        store.put('complianceguard_last_sync', b'"yesterday"')

        registry = fresh_registry()
        manager = SyncManager(registry, source, store, clock=clock)
        manager.load()

        assert registry.get('List A').sync_state == SyncState.NEVER
        assert manager.last_sync is None

    def test_wrongly_typed_entities_treated_as_absent(self, sync_manager, store, source, clock):
        """Test a stored entity set with bad field types is ignored"""
        sync_manager.sync_all()
        store.put('complianceguard_sanctions_data:List A',
                  json.dumps([{'id': 'x', 'name': 'ACME', 'aliases': 5}]).encode('utf-8'))

        registry = fresh_registry()
        restored = SyncManager(registry, source, store, clock=clock)
        restored.load()

        assert registry.entities('List A') == ()
        assert [e.id for e in registry.entities('List B')] == ['un-001']
        assert restored.last_sync is None

    def test_missing_entities_force_resync(self, sync_manager, store, source, clock):
        """Test a synced list without its entity set invalidates the last sync"""
        sync_manager.sync_all()
        data = {key: store.get(key) for key in store.keys()
                if key != 'complianceguard_sanctions_data:List B'}

        registry = fresh_registry()
        restored = SyncManager(registry, source, InMemoryKeyValueStore(data), clock=clock)
        restored.load()

        assert restored.last_sync is None
        assert restored.is_stale()

    def test_store_failure_does_not_fail_sync(self, registry, source, clock):
        """Test persistence errors leave the in-memory state authoritative"""
        manager = SyncManager(registry, source, FailingStore(), clock=clock)

        outcomes = manager.sync_all()

        assert all(outcome.succeeded for outcome in outcomes)
        assert registry.get('List A').sync_state == SyncState.SYNCED
        assert manager.persist() is False


class TestPeriodicSync:
    """Tests for the background trigger"""

    def test_start_and_stop(self, sync_manager, source):
        """Test the trigger repeats cycles until stopped"""
        sync_manager.start_periodic(interval_hours=0.05 / 3600)

        assert sync_manager.is_running()
        assert wait_for(lambda: source.call_count() >= 4)

        sync_manager.stop_periodic()
        assert not sync_manager.is_running()

    def test_start_twice(self, sync_manager):
        """Test a second start keeps the existing thread"""
        sync_manager.start_periodic(interval_hours=1)
        thread = sync_manager._scheduler_thread

        sync_manager.start_periodic(interval_hours=1)

        assert sync_manager._scheduler_thread is thread
        sync_manager.stop_periodic()

    def test_scheduled_cycle_survives_errors(self, sync_manager, monkeypatch):
        """Test an unexpected failure does not kill the trigger"""
        def explode():
            raise RuntimeError("boom")

        monkeypatch.setattr(sync_manager, 'sync_all', explode)
        assert sync_manager.run_scheduled_cycle() == []
