"""
Candidate search over listed entities.

Every entity is scored on its name, each alias, its nationality and its
country. Fields scoring below the acceptance threshold are dropped; accepted
fields get a bonus by field:

    name         raw score, plus the exact-match bonus when raw == 1.0
    alias        raw score + alias bonus
    nationality  raw score + partial bonus
    country      raw score + partial bonus

Adjusted scores are not clamped, so they can exceed 1.0. Each entity keeps
only its best candidate and results are ranked by adjusted score, ties kept
in discovery order.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .similarity import similarity
from ..models import ListedEntity, MatchCandidate, MatchedField
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class MatchingConfiguration:
    """Thresholds and bonuses for candidate scoring."""
    min_score: float = 0.3
    exact_match_bonus: float = 0.2
    alias_match_bonus: float = 0.15
    partial_match_bonus: float = 0.1

    @classmethod
    def from_config(cls, config) -> "MatchingConfiguration":
        defaults = cls()
        return cls(
            min_score=float(config.get('matching.min_score', defaults.min_score)),
            exact_match_bonus=float(config.get('matching.exact_match_bonus', defaults.exact_match_bonus)),
            alias_match_bonus=float(config.get('matching.alias_match_bonus', defaults.alias_match_bonus)),
            partial_match_bonus=float(config.get('matching.partial_match_bonus', defaults.partial_match_bonus)),
        )


class MatchFinder:
    """Finds ranked, deduplicated match candidates for a query string."""

    def __init__(self, registry=None, config: Optional[MatchingConfiguration] = None):
        """
        Args:
            registry: DatabaseRegistry supplying loaded entity sets for
                find_all_matches. Not needed for find_matches.
            config: Scoring configuration (defaults if not provided)
        """
        self.registry = registry
        self.config = config or MatchingConfiguration()

    def score_entity(self, query: str, entity: ListedEntity) -> List[MatchCandidate]:
        """All accepted candidates for one entity, in field order."""
        candidates = []
        min_score = self.config.min_score

        name_score = similarity(query, entity.name)
        if name_score >= min_score:
            bonus = self.config.exact_match_bonus if name_score == 1.0 else 0.0
            candidates.append(MatchCandidate(entity, name_score + bonus, MatchedField.NAME, entity.name))

        for alias in entity.aliases:
            alias_score = similarity(query, alias)
            if alias_score >= min_score:
                candidates.append(MatchCandidate(
                    entity, alias_score + self.config.alias_match_bonus, MatchedField.ALIAS, alias
                ))

        for matched_field, value in ((MatchedField.NATIONALITY, entity.nationality),
                                     (MatchedField.COUNTRY, entity.country)):
            if not value:
                continue
            field_score = similarity(query, value)
            if field_score >= min_score:
                candidates.append(MatchCandidate(
                    entity, field_score + self.config.partial_match_bonus, matched_field, value
                ))

        return candidates

    def find_matches(self, query: str, entities: Iterable[ListedEntity]) -> List[MatchCandidate]:
        """
        Rank candidates for query among entities.

        Args:
            query: Free-text name to screen
            entities: Listed entities of one source list

        Returns:
            At most one candidate per entity id, best first
        """
        candidates: List[MatchCandidate] = []
        for entity in entities:
            candidates.extend(self.score_entity(query, entity))

        return self._rank_unique(candidates)

    def find_all_matches(self, query: str) -> List[MatchCandidate]:
        """
        Rank candidates for query across every list loaded in the registry.

        Each list is deduplicated on its own, so equal ids on different lists
        are kept apart.
        """
        if self.registry is None:
            raise RuntimeError("MatchFinder has no registry; use find_matches() with an entity set")

        merged: List[MatchCandidate] = []
        for name in self.registry.names():
            merged.extend(self.find_matches(query, self.registry.entities(name)))

        merged.sort(key=lambda candidate: candidate.score, reverse=True)
        logger.debug(f"Found {len(merged)} candidates for '{query}' across {len(self.registry)} lists")
        return merged

    @staticmethod
    def _rank_unique(candidates: List[MatchCandidate]) -> List[MatchCandidate]:
        best: Dict[str, Tuple[int, MatchCandidate]] = {}
        for index, candidate in enumerate(candidates):
            current = best.get(candidate.entity.id)
            if current is None or candidate.score > current[1].score:
                best[candidate.entity.id] = (index, candidate)

        ranked = sorted(best.values(), key=lambda item: (-item[1].score, item[0]))
        return [candidate for _, candidate in ranked]
