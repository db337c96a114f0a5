"""
SourceList model describing one restricted-party list and its sync state.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional

from .base import SyncState


@dataclass
class SourceList:
    """
    A named restricted-party list.

    Only the catalog attributes (name, region, description, source_url) are
    static. The sync metadata is changed by the sync manager through the
    registry.
    """
    name: str
    region: str
    description: str
    source_url: Optional[str] = None
    entity_count: int = 0
    sync_state: SyncState = SyncState.NEVER
    last_updated: Optional[datetime] = None
    last_attempt: Optional[datetime] = None
    error_message: Optional[str] = None

    def __repr__(self):
        return f"<SourceList(name='{self.name}', state='{self.sync_state.value}', entities={self.entity_count})>"

    def copy(self) -> "SourceList":
        return replace(self)

    def to_status_dict(self) -> Dict[str, Any]:
        """Sync metadata in its persisted form."""
        return {
            'status': self.sync_state.value,
            'entity_count': self.entity_count,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None,
            'last_sync_attempt': self.last_attempt.isoformat() if self.last_attempt else None,
            'error_message': self.error_message,
        }

    @staticmethod
    def parse_status_dict(data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert persisted sync metadata into SourceList field values.

        Raises:
            ValueError: If the status or a timestamp is malformed.
        """
        return {
            'sync_state': SyncState(data.get('status', SyncState.NEVER.value)),
            'entity_count': int(data.get('entity_count') or 0),
            'last_updated': _parse_timestamp(data.get('last_updated')),
            'last_attempt': _parse_timestamp(data.get('last_sync_attempt')),
            'error_message': data.get('error_message'),
        }


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
