"""
Services module for the ComplianceGuard screening engine.
"""

from .similarity import similarity, edit_distance
from .match_finder import MatchFinder, MatchingConfiguration
from .registry import DatabaseRegistry, default_catalog
from .data_source import DataSource, SampleDataSource, HttpDataSource, create_data_source
from .sync_manager import SyncManager, SyncConfiguration
from .screening_service import (
    ScreeningOrchestrator, ScreeningConfiguration, aggregate_status, build_summary, classify_check
)

__all__ = [
    'similarity',
    'edit_distance',
    'MatchFinder',
    'MatchingConfiguration',
    'DatabaseRegistry',
    'default_catalog',
    'DataSource',
    'SampleDataSource',
    'HttpDataSource',
    'create_data_source',
    'SyncManager',
    'SyncConfiguration',
    'ScreeningOrchestrator',
    'ScreeningConfiguration',
    'aggregate_status',
    'build_summary',
    'classify_check',
]
