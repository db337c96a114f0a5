"""
KeyValueEntry model backing the SQL key-value store.
"""
from sqlalchemy import Column, String, DateTime, LargeBinary
from .base import Base, get_current_timestamp


class KeyValueEntry(Base):
    """
    One persisted blob.

    Attributes:
        key: Store key, e.g. 'complianceguard_sync_status'
        value: Serialized payload
        updated_at: Timestamp of the last write
    """
    __tablename__ = 'key_value_entries'

    key = Column(String(255), primary_key=True)
    value = Column(LargeBinary, nullable=False)
    updated_at = Column(DateTime, default=get_current_timestamp, onupdate=get_current_timestamp, nullable=False)

    def __repr__(self):
        return f"<KeyValueEntry(key='{self.key}', size={len(self.value) if self.value else 0})>"
