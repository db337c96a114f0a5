"""
ListedEntity model for records on restricted-party lists.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from .base import EntityCategory
from ..utils.error_handler import DataParsingError

# Feed key -> attribute, for feeds that use camelCase
_FIELD_ALIASES = {
    'type': 'category',
    'dateOfBirth': 'date_of_birth',
    'placeOfBirth': 'place_of_birth',
    'passportNumbers': 'passport_numbers',
    'nationalIds': 'national_ids',
    'listedDate': 'listed_date',
}

_SEQUENCE_FIELDS = ('aliases', 'passport_numbers', 'national_ids', 'addresses')
_TEXT_FIELDS = ('nationality', 'country', 'date_of_birth', 'place_of_birth', 'remarks')


@dataclass(frozen=True)
class ListedEntity:
    """
    One record on a restricted-party list.

    Attributes:
        id: Identifier unique within the source list
        name: Canonical name
        aliases: Alternative names
        category: individual, entity, vessel or aircraft
        nationality: Nationality, if published
        country: Associated country, if published
        date_of_birth: Date of birth as published (free text)
        place_of_birth: Place of birth as published
        passport_numbers: Passport numbers
        national_ids: National identification numbers
        addresses: Known addresses
        remarks: Free-text remarks from the list
        listed_date: Date the record was added to the list
        source: Name of the source list
    """
    id: str
    name: str
    aliases: Tuple[str, ...] = ()
    category: EntityCategory = EntityCategory.ENTITY
    nationality: Optional[str] = None
    country: Optional[str] = None
    date_of_birth: Optional[str] = None
    place_of_birth: Optional[str] = None
    passport_numbers: Tuple[str, ...] = ()
    national_ids: Tuple[str, ...] = ()
    addresses: Tuple[str, ...] = ()
    remarks: str = ""
    listed_date: Optional[date] = None
    source: str = ""

    def __repr__(self):
        return f"<ListedEntity(id='{self.id}', name='{self.name}', source='{self.source}')>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert the entity to a JSON-compatible dictionary."""
        return {
            'id': self.id,
            'name': self.name,
            'aliases': list(self.aliases),
            'category': self.category.value,
            'nationality': self.nationality,
            'country': self.country,
            'date_of_birth': self.date_of_birth,
            'place_of_birth': self.place_of_birth,
            'passport_numbers': list(self.passport_numbers),
            'national_ids': list(self.national_ids),
            'addresses': list(self.addresses),
            'remarks': self.remarks,
            'listed_date': self.listed_date.isoformat() if self.listed_date else None,
            'source': self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> "ListedEntity":
        """
        Build an entity from a stored or fetched record.

        Accepts both snake_case and camelCase keys. ``source`` overrides the
        record's own source name when given.

        Raises:
            DataParsingError: If the record lacks an id or name, has an
                unknown category or listing date, or a field of the wrong type.
        """
        if not isinstance(data, dict):
            raise DataParsingError(f"Expected an object for a listed entity, got {type(data).__name__}")

        fields = {_FIELD_ALIASES.get(key, key): value for key, value in data.items()}

        entity_id = str(fields.get('id') or '').strip()
        name = str(fields.get('name') or '').strip()
        if not entity_id or not name:
            raise DataParsingError(f"Listed entity record is missing id or name: {data!r}")

        try:
            category = EntityCategory(str(fields.get('category') or 'entity').lower())
        except ValueError:
            raise DataParsingError(f"Unknown category for entity {entity_id}: {fields.get('category')!r}")

        sequences = {key: _sequence(fields.get(key), key, entity_id) for key in _SEQUENCE_FIELDS}
        texts = {key: _text(fields.get(key), key, entity_id) for key in _TEXT_FIELDS}

        return cls(
            id=entity_id,
            name=name,
            category=category,
            nationality=texts['nationality'],
            country=texts['country'],
            date_of_birth=texts['date_of_birth'],
            place_of_birth=texts['place_of_birth'],
            remarks=texts['remarks'] or "",
            listed_date=_parse_date(fields.get('listed_date'), entity_id),
            source=source or fields.get('source') or "",
            **sequences
        )


def _text(value: Any, key: str, entity_id: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise DataParsingError(f"Field {key} of entity {entity_id} must be text, got {type(value).__name__}")
    return value.strip() or None


def _sequence(value: Any, key: str, entity_id: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise DataParsingError(f"Field {key} of entity {entity_id} must be a list, got {type(value).__name__}")
    return tuple(str(item) for item in value if item is not None)


def _parse_date(value: Any, entity_id: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        # Feeds send either a date or a full ISO timestamp
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise DataParsingError(f"Invalid listed date for entity {entity_id}: {value!r}")
