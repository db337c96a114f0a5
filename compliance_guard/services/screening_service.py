"""
Screening orchestration: runs every query of a request against every source
list, classifies each check and aggregates them into a verdict.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .match_finder import MatchFinder
from .registry import DatabaseRegistry
from .sync_manager import SyncManager
from ..models import (
    CheckStatus, ListedEntity, MatchCandidate, OverallStatus, QueryCategory, RiskLevel,
    ScreeningCheck, ScreeningRequest, ScreeningVerdict, SourceList, SyncState
)
from ..utils.logger import get_logger, get_audit_logger, log_performance

logger = get_logger(__name__)
audit_logger = get_audit_logger()

NEAR_EXACT_THRESHOLD = 0.9
HIGH_CONFIDENCE_THRESHOLD = 0.7
POTENTIAL_MATCH_THRESHOLD = 0.5


@dataclass
class ScreeningConfiguration:
    """Configuration for screening requests."""
    max_workers: int = 8
    max_matches_per_check: int = 5

    @classmethod
    def from_config(cls, config) -> "ScreeningConfiguration":
        defaults = cls()
        return cls(
            max_workers=max(1, int(config.get('screening.max_workers', defaults.max_workers))),
            max_matches_per_check=max(1, int(config.get('screening.max_matches_per_check',
                                                        defaults.max_matches_per_check))),
        )


def classify_check(query: str,
                   source_list: SourceList,
                   entities: Sequence[ListedEntity],
                   best: Optional[MatchCandidate]) -> Tuple[CheckStatus, RiskLevel, str]:
    """
    Status, risk and details for one query against one list.

    Args:
        query: Screened string
        source_list: List metadata at evaluation time
        entities: List entity set at evaluation time
        best: Highest-scoring candidate, if any
    """
    name = source_list.name

    if best is not None:
        match_text = (f'Entity "{query}" matches "{best.matched_value}" ({best.matched_field.value}) '
                      f'with {best.confidence_percent}% confidence.')
        if best.score >= NEAR_EXACT_THRESHOLD:
            return CheckStatus.FLAGGED, RiskLevel.HIGH, f"Exact or near-exact match found in {name}. {match_text}"
        if best.score >= HIGH_CONFIDENCE_THRESHOLD:
            return CheckStatus.FLAGGED, RiskLevel.HIGH, f"High-confidence match found in {name}. {match_text}"
        if best.score >= POTENTIAL_MATCH_THRESHOLD:
            return (CheckStatus.REVIEW, RiskLevel.MEDIUM,
                    f"Potential match found in {name}. {match_text} Manual review recommended.")
        return CheckStatus.REVIEW, RiskLevel.LOW, f"Low-confidence match found in {name}. {match_text}"

    if source_list.sync_state == SyncState.SYNCED and entities:
        return (CheckStatus.CLEAR, RiskLevel.LOW,
                f'No matches found in {name}. Entity "{query}" is not listed in this database.')

    if source_list.sync_state == SyncState.ERROR:
        return (CheckStatus.NO_DATA, RiskLevel.LOW,
                f"Unable to search {name} due to sync error: {source_list.error_message}. "
                f"Please try again later or contact support.")

    return (CheckStatus.NO_DATA, RiskLevel.LOW,
            f"Database {name} has not been synchronized yet. Please wait for the next sync cycle "
            f"or contact support to request immediate sync.")


def aggregate_status(checks: Iterable) -> OverallStatus:
    """
    Overall status from checks (or bare CheckStatus values).

    flagged if any check is flagged, otherwise review if any check is review or
    no_data, otherwise clear.
    """
    statuses = {getattr(check, 'status', check) for check in checks}
    if CheckStatus.FLAGGED in statuses:
        return OverallStatus.FLAGGED
    if CheckStatus.REVIEW in statuses or CheckStatus.NO_DATA in statuses:
        return OverallStatus.REVIEW
    return OverallStatus.CLEAR


def build_summary(checks: Sequence[ScreeningCheck],
                  overall_status: OverallStatus,
                  fuzzy_match_count: int = 0) -> Tuple[str, List[str]]:
    """Summary sentence and ordered recommendations for a verdict."""
    flagged_count = sum(1 for c in checks if c.status == CheckStatus.FLAGGED)
    review_count = sum(1 for c in checks if c.status == CheckStatus.REVIEW)
    no_data_count = sum(1 for c in checks if c.status == CheckStatus.NO_DATA)

    recommendations: List[str] = []

    if overall_status == OverallStatus.CLEAR:
        summary = (f"Compliance screening completed successfully. All entities cleared across "
                   f"{len(checks)} database checks. No sanctions or embargo restrictions identified.")
        recommendations.extend([
            "Project may proceed as planned",
            "Maintain records for compliance audit purposes",
            "Re-run check before final delivery",
        ])

    elif overall_status == OverallStatus.REVIEW:
        if no_data_count > 0:
            summary = (f"Compliance screening completed with {no_data_count} database(s) unavailable. "
                       f"{review_count} entities require additional review. Enhanced due diligence recommended.")
            recommendations.extend([
                "Some databases are not currently available - retry later",
                "Conduct enhanced due diligence on flagged entities",
                "Consult legal/compliance team before proceeding",
                "Document additional verification steps taken",
            ])
        else:
            summary = (f"Compliance screening identified {review_count} entities requiring additional review. "
                       f"Enhanced due diligence recommended before proceeding.")
            recommendations.extend([
                "Conduct enhanced due diligence on flagged entities",
                "Consult legal/compliance team before proceeding",
                "Document additional verification steps taken",
                "Consider risk mitigation measures",
            ])

        if fuzzy_match_count > 0:
            recommendations.append(f"Found {fuzzy_match_count} potential fuzzy matches - review manually")

    else:
        summary = (f"Compliance screening FAILED. {flagged_count} entities found on sanctions lists. "
                   f"Project cannot proceed without compliance clearance.")
        recommendations.extend([
            "DO NOT PROCEED with current project structure",
            "Immediate legal/compliance review required",
            "Consider alternative project structure or partners",
            "Document all findings for regulatory reporting",
        ])

    return summary, recommendations


class ScreeningOrchestrator:
    """
    Screens requests against every registered source list.

    The query x list matrix is evaluated on a thread pool; each cell reads one
    consistent snapshot of its list, and results are merged in query order then
    list registration order.
    """

    def __init__(self,
                 registry: DatabaseRegistry,
                 match_finder: MatchFinder,
                 sync_manager: SyncManager,
                 config: Optional[ScreeningConfiguration] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.registry = registry
        self.match_finder = match_finder
        self.sync_manager = sync_manager
        self.config = config or ScreeningConfiguration()
        self.clock = clock

    def _refresh(self) -> None:
        try:
            self.sync_manager.ensure_fresh()
        except Exception as e:
            # Screening continues on whatever data is already loaded
            logger.error(f"Freshness check failed, screening with cached data: {e}", exc_info=True)

    def _check_list(self, name: str, query: str,
                    category: QueryCategory) -> Tuple[ScreeningCheck, List[MatchCandidate]]:
        source_list, entities = self.registry.snapshot(name)
        try:
            candidates = self.match_finder.find_matches(query, entities)
        except Exception as e:
            logger.error(f"Matching '{query}' against {name} failed: {e}", exc_info=True)
            check = ScreeningCheck(
                list_name=name,
                query=query,
                query_category=category,
                status=CheckStatus.NO_DATA,
                details=f"Unable to search {name}: {type(e).__name__}: {e}. Please contact support.",
                risk_level=RiskLevel.LOW,
                matches=(),
                match_score=0.0,
                last_updated=source_list.last_updated,
            )
            return check, []
        best = candidates[0] if candidates else None
        status, risk_level, details = classify_check(query, source_list, entities, best)

        check = ScreeningCheck(
            list_name=name,
            query=query,
            query_category=category,
            status=status,
            details=details,
            risk_level=risk_level,
            matches=tuple(candidates[:self.config.max_matches_per_check]),
            match_score=best.score if best else 0.0,
            last_updated=source_list.last_updated,
        )
        return check, candidates

    def _evaluate(self, queries: Sequence[Tuple[str, QueryCategory]]
                  ) -> List[Tuple[ScreeningCheck, List[MatchCandidate]]]:
        names = self.registry.names()
        with ThreadPoolExecutor(max_workers=self.config.max_workers,
                                thread_name_prefix="screening") as executor:
            futures = []
            for query, category in queries:
                self._refresh()
                futures.extend(executor.submit(self._check_list, name, query, category) for name in names)
            return [future.result() for future in futures]

    def check_entity(self, query: str,
                     category: QueryCategory = QueryCategory.CLIENT) -> List[ScreeningCheck]:
        """Screen one string against every list, one check per list."""
        return [check for check, _ in self._evaluate([(query.strip(), category)])]

    def get_fuzzy_matches(self, query: str) -> List[MatchCandidate]:
        """All candidates for query across loaded lists, best first."""
        return self.match_finder.find_all_matches(query)

    @log_performance(logger, "screen")
    def screen(self, request: ScreeningRequest) -> ScreeningVerdict:
        """
        Screen a request and build its verdict.

        The request is expected to be valid (see ScreeningRequest.validate).
        List failures appear as no_data checks; they never abort the request.
        """
        queries = request.queries()
        logger.info(f"Screening request {request.id} with {len(queries)} queries "
                    f"against {len(self.registry)} lists")

        results = self._evaluate(queries)
        checks = [check for check, _ in results]

        # Per query, candidates from every list ranked together
        fuzzy_matches: List[MatchCandidate] = []
        per_query = len(self.registry)
        for start in range(0, len(results), per_query or 1):
            merged = [candidate for _, candidates in results[start:start + per_query] for candidate in candidates]
            merged.sort(key=lambda candidate: candidate.score, reverse=True)
            fuzzy_matches.extend(merged)

        overall_status = aggregate_status(checks)
        summary, recommendations = build_summary(checks, overall_status, len(fuzzy_matches))

        verdict = ScreeningVerdict(
            request_id=request.id,
            overall_status=overall_status,
            checks=tuple(checks),
            summary=summary,
            recommendations=tuple(recommendations),
            checked_at=self.clock(),
            search_query=", ".join(query for query, _ in queries),
            fuzzy_matches=tuple(fuzzy_matches),
        )

        counts = verdict.status_counts()
        audit_logger.info(
            f"Screening {request.id} query='{verdict.search_query}' overall={overall_status.value} "
            + " ".join(f"{status.value}={count}" for status, count in counts.items())
        )
        return verdict
