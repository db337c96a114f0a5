"""
Data models for the ComplianceGuard screening engine.
"""
from .base import (
    Base, generate_uuid, get_current_timestamp,
    EntityCategory, QueryCategory, SyncState, MatchedField, CheckStatus, OverallStatus, RiskLevel
)
from .listed_entity import ListedEntity
from .source_list import SourceList
from .screening import (
    MatchCandidate, ScreeningCheck, ScreeningVerdict, ScreeningRequest, SyncOutcome
)
from .key_value_entry import KeyValueEntry

__all__ = [
    'Base',
    'generate_uuid',
    'get_current_timestamp',
    'EntityCategory',
    'QueryCategory',
    'SyncState',
    'MatchedField',
    'CheckStatus',
    'OverallStatus',
    'RiskLevel',
    'ListedEntity',
    'SourceList',
    'MatchCandidate',
    'ScreeningCheck',
    'ScreeningVerdict',
    'ScreeningRequest',
    'SyncOutcome',
    'KeyValueEntry',
]
