"""
Persistence components for the ComplianceGuard screening engine.
"""
from .manager import DatabaseManager
from .store import KeyValueStore, InMemoryKeyValueStore, SqlKeyValueStore

__all__ = [
    'DatabaseManager',
    'KeyValueStore',
    'InMemoryKeyValueStore',
    'SqlKeyValueStore',
]
