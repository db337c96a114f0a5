"""
Shared enumerations and SQLAlchemy base for ComplianceGuard models.
"""
from sqlalchemy.orm import declarative_base
from datetime import datetime
import uuid
import enum

# Create the declarative base
Base = declarative_base()


class EntityCategory(enum.Enum):
    """Kind of record on a restricted-party list."""
    INDIVIDUAL = "individual"
    ENTITY = "entity"
    VESSEL = "vessel"
    AIRCRAFT = "aircraft"


class QueryCategory(enum.Enum):
    """Role of a screened string within a request."""
    CLIENT = "client"
    INDIVIDUAL = "individual"
    COUNTRY = "country"


class SyncState(enum.Enum):
    """
    Lifecycle of a source list.

    never -> syncing -> synced | error, and synced | error -> syncing again.
    NEVER is only ever the initial state.
    """
    NEVER = "never"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"

    def can_transition_to(self, target: "SyncState") -> bool:
        return target in _SYNC_TRANSITIONS[self]


_SYNC_TRANSITIONS = {
    SyncState.NEVER: {SyncState.SYNCING},
    SyncState.SYNCING: {SyncState.SYNCED, SyncState.ERROR},
    SyncState.SYNCED: {SyncState.SYNCING},
    SyncState.ERROR: {SyncState.SYNCING},
}


class MatchedField(enum.Enum):
    """Which attribute of a listed entity produced a match."""
    NAME = "name"
    ALIAS = "alias"
    NATIONALITY = "nationality"
    COUNTRY = "country"


class CheckStatus(enum.Enum):
    """Outcome of one query against one source list."""
    CLEAR = "clear"
    FLAGGED = "flagged"
    REVIEW = "review"
    NO_DATA = "no_data"


class OverallStatus(enum.Enum):
    """Aggregated outcome of a screening request."""
    CLEAR = "clear"
    FLAGGED = "flagged"
    REVIEW = "review"


class RiskLevel(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def generate_uuid():
    """Generate a UUID string for identifiers."""
    return str(uuid.uuid4())


def get_current_timestamp():
    """Get current timestamp for created/updated fields."""
    return datetime.utcnow()
