"""
Request, match and verdict models for screening operations.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .base import (
    CheckStatus, MatchedField, OverallStatus, QueryCategory, RiskLevel, SyncState, generate_uuid
)
from .listed_entity import ListedEntity
from ..utils.error_handler import ValidationError

CHECK_TYPES = ('inquiry', 'pre-delivery')


@dataclass(frozen=True)
class MatchCandidate:
    """
    A candidate hit of a query against one listed entity.

    ``score`` is the similarity plus the field bonus and can exceed 1.0.
    """
    entity: ListedEntity
    score: float
    matched_field: MatchedField
    matched_value: str

    @property
    def confidence_percent(self) -> int:
        return int(math.floor(self.score * 100 + 0.5))


@dataclass(frozen=True)
class ScreeningCheck:
    """Result of one query string against one source list."""
    list_name: str
    query: str
    query_category: QueryCategory
    status: CheckStatus
    details: str
    risk_level: RiskLevel
    matches: Tuple[MatchCandidate, ...] = ()
    match_score: float = 0.0
    last_updated: Optional[datetime] = None


@dataclass(frozen=True)
class ScreeningVerdict:
    """Aggregated outcome of a screening request."""
    request_id: str
    overall_status: OverallStatus
    checks: Tuple[ScreeningCheck, ...]
    summary: str
    recommendations: Tuple[str, ...]
    checked_at: datetime
    search_query: str
    fuzzy_matches: Tuple[MatchCandidate, ...] = ()

    def status_counts(self) -> Dict[CheckStatus, int]:
        counts = {status: 0 for status in CheckStatus}
        for check in self.checks:
            counts[check.status] += 1
        return counts

    def flagged_checks(self) -> List[ScreeningCheck]:
        return [check for check in self.checks if check.status == CheckStatus.FLAGGED]


@dataclass
class ScreeningRequest:
    """
    Structured screening request produced by the intake layer.

    Attributes:
        client: Client name (required)
        location: Project location, usually a country (required)
        end_user: End user, screened only when it differs from the client
        project_name: Optional project label
        scope: Optional free-text project scope
        check_type: 'inquiry' or 'pre-delivery'
        id: Request identifier carried into the verdict
    """
    client: str
    location: str
    end_user: Optional[str] = None
    project_name: str = ""
    scope: str = ""
    check_type: str = "inquiry"
    id: str = field(default_factory=generate_uuid)

    def validate(self) -> None:
        """
        Reject requests that cannot be screened.

        Raises:
            ValidationError: If client or location is blank, or the check type
                is unknown.
        """
        missing = [label for label, value in (('client', self.client), ('location', self.location))
                   if not value or not str(value).strip()]
        if missing:
            raise ValidationError(f"Screening request is missing required field(s): {', '.join(missing)}")
        if self.check_type not in CHECK_TYPES:
            raise ValidationError(f"Unknown check type '{self.check_type}', expected one of {CHECK_TYPES}")

    def queries(self) -> List[Tuple[str, QueryCategory]]:
        """Query strings in screening order: client, end user, location."""
        client = self.client.strip()
        queries = [(client, QueryCategory.CLIENT)]

        end_user = (self.end_user or "").strip()
        if end_user and end_user != client:
            queries.append((end_user, QueryCategory.INDIVIDUAL))

        queries.append((self.location.strip(), QueryCategory.COUNTRY))
        return queries


@dataclass(frozen=True)
class SyncOutcome:
    """Per-list result of a sync cycle or a status query."""
    list_name: str
    status: SyncState
    timestamp: Optional[datetime]
    entity_count: int
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SyncState.SYNCED
