"""
Registry of known sanctions lists, their sync metadata and loaded entities.

The registry is a plain state holder. The sync manager decides on state
transitions; the registry only guarantees that each list's metadata and entity
set are read and replaced consistently.
"""

import threading
from dataclasses import fields as dataclass_fields
from typing import Dict, Iterable, List, Optional, Tuple

from ..models import ListedEntity, SourceList
from ..utils.error_handler import ConfigurationError

DEFAULT_SOURCE_LISTS = (
    {
        'name': 'OFAC SDN List',
        'region': 'USA',
        'description': 'Office of Foreign Assets Control Specially Designated Nationals and Blocked Persons',
        'source_url': 'https://www.treasury.gov/ofac/downloads/sdnlist.txt',
    },
    {
        'name': 'EU Consolidated Sanctions List',
        'region': 'Europe',
        'description': 'European Union Consolidated List of Persons, Groups and Entities Subject to EU Financial Sanctions',
        'source_url': 'https://webgate.ec.europa.eu/fsd/fsf/public/files/csvFullSanctionsList/content',
    },
    {
        'name': 'United Nations Sanctions List',
        'region': 'Global',
        'description': 'United Nations Security Council Consolidated Sanctions List',
        'source_url': 'https://scsanctions.un.org/resources/xml/en/consolidated.xml',
    },
    {
        'name': 'HMT Consolidated List',
        'region': 'UK',
        'description': 'HM Treasury Consolidated List of Financial Sanctions Targets',
        'source_url': 'https://www.gov.uk/government/publications/financial-sanctions-consolidated-list-of-targets',
    },
)

_MUTABLE_FIELDS = frozenset(
    f.name for f in dataclass_fields(SourceList)
) - {'name', 'region', 'description', 'source_url'}


def default_catalog() -> List[SourceList]:
    """Fresh SourceList instances for the built-in lists, all never synced."""
    return [SourceList(**entry) for entry in DEFAULT_SOURCE_LISTS]


class DatabaseRegistry:
    """
    Catalog of source lists in registration order.

    Lookups by name are dict lookups. Each list has its own lock, so updates
    to one list never wait on another.
    """

    def __init__(self, source_lists: Optional[Iterable[SourceList]] = None):
        self._lists: Dict[str, SourceList] = {}
        self._entities: Dict[str, Tuple[ListedEntity, ...]] = {}
        self._locks: Dict[str, threading.Lock] = {}

        for source_list in (default_catalog() if source_lists is None else source_lists):
            self.register(source_list)

    def register(self, source_list: SourceList) -> None:
        """
        Add a list to the catalog.

        Raises:
            ConfigurationError: If a list with the same name is registered.
        """
        if source_list.name in self._lists:
            raise ConfigurationError(f"Source list '{source_list.name}' is already registered")
        self._lists[source_list.name] = source_list
        self._entities[source_list.name] = ()
        self._locks[source_list.name] = threading.Lock()

    def __len__(self) -> int:
        return len(self._lists)

    def __contains__(self, name: str) -> bool:
        return name in self._lists

    def names(self) -> List[str]:
        return list(self._lists)

    def get(self, name: str) -> SourceList:
        """Copy of the list's current metadata."""
        self._require(name)
        with self._locks[name]:
            return self._lists[name].copy()

    def lists(self) -> List[SourceList]:
        return [self.get(name) for name in self._lists]

    def entities(self, name: str) -> Tuple[ListedEntity, ...]:
        """Currently published entity set. The tuple itself is never mutated."""
        self._require(name)
        return self._entities[name]

    def snapshot(self, name: str) -> Tuple[SourceList, Tuple[ListedEntity, ...]]:
        """Metadata and entity set of a list as of the same instant."""
        self._require(name)
        with self._locks[name]:
            return self._lists[name].copy(), self._entities[name]

    def update(self, list_name: str, entities: Optional[Iterable[ListedEntity]] = None, **changes) -> SourceList:
        """
        Change sync metadata and optionally publish a new entity set, atomically.

        Args:
            list_name: List to change
            entities: Replacement entity set, or None to keep the current one
            **changes: SourceList sync fields to set

        Returns:
            Copy of the updated metadata
        """
        self._require(list_name)
        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            raise AttributeError(f"Cannot update SourceList field(s): {', '.join(sorted(unknown))}")

        with self._locks[list_name]:
            source_list = self._lists[list_name]
            for key, value in changes.items():
                setattr(source_list, key, value)
            if entities is not None:
                # Swap the reference; readers holding the old tuple are unaffected
                self._entities[list_name] = tuple(entities)
            return source_list.copy()

    def publish_entities(self, name: str, entities: Iterable[ListedEntity]) -> None:
        self.update(name, entities=entities)

    def _require(self, name: str) -> None:
        if name not in self._lists:
            raise KeyError(f"Unknown source list: {name}")
