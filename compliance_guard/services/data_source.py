"""
Data sources that supply the entity set of each sanctions list.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from ..models import ListedEntity
from ..utils.logger import get_logger
from ..utils.error_handler import (
    ConfigurationError, DataParsingError, DataSourceError, ErrorContext
)

logger = get_logger(__name__)


class DataSource(ABC):
    """Boundary to wherever sanctions records come from."""

    @abstractmethod
    def fetch(self, list_name: str) -> List[ListedEntity]:
        """
        Return the current entity set of a list.

        Raises:
            DataSourceError: If the list cannot be retrieved.
            DataParsingError: If the retrieved records are malformed.
        """


# Demonstration records, one small set per built-in list
SAMPLE_RECORDS: Dict[str, List[Dict[str, Any]]] = {
    'OFAC SDN List': [
        {
            'id': 'ofac-001',
            'name': 'AHMAD KHALIL ARIF AL-DULAYMI',
            'aliases': ['AHMAD AL-DULAYMI', 'KHALIL ARIF'],
            'category': 'individual',
            'nationality': 'Iraqi',
            'country': 'Iraq',
            'date_of_birth': '1960-01-01',
            'place_of_birth': 'Baghdad, Iraq',
            'passport_numbers': ['I123456789'],
            'national_ids': ['IRQ123456'],
            'addresses': ['Baghdad, Iraq'],
            'remarks': 'Former Iraqi official',
            'listed_date': '2003-03-20',
        },
        {
            'id': 'ofac-002',
            'name': 'IRANIAN REVOLUTIONARY GUARD CORPS',
            'aliases': ['IRGC', 'PASDARAN', 'REVOLUTIONARY GUARDS'],
            'category': 'entity',
            'country': 'Iran',
            'addresses': ['Tehran, Iran'],
            'remarks': 'Iranian military organization',
            'listed_date': '2007-10-25',
        },
    ],
    'EU Consolidated Sanctions List': [
        {
            'id': 'eu-001',
            'name': 'ALEXANDER LUKASHENKO',
            'aliases': ['ALYAKSANDR LUKASHENKA'],
            'category': 'individual',
            'nationality': 'Belarusian',
            'country': 'Belarus',
            'date_of_birth': '1954-08-30',
            'place_of_birth': 'Kopys, Belarus',
            'passport_numbers': ['AB1234567'],
            'national_ids': ['BLR123456'],
            'addresses': ['Minsk, Belarus'],
            'remarks': 'President of Belarus',
            'listed_date': '2020-10-02',
        },
    ],
    'United Nations Sanctions List': [
        {
            'id': 'un-001',
            'name': 'KIM JONG-UN',
            'aliases': ['KIM JONG UN', 'KIM JONG IL'],
            'category': 'individual',
            'nationality': 'North Korean',
            'country': 'North Korea',
            'date_of_birth': '1984-01-08',
            'place_of_birth': 'Pyongyang, North Korea',
            'passport_numbers': ['KP123456789'],
            'national_ids': ['PRK123456'],
            'addresses': ['Pyongyang, North Korea'],
            'remarks': 'Supreme Leader of North Korea',
            'listed_date': '2006-10-14',
        },
    ],
    'HMT Consolidated List': [
        {
            'id': 'hmt-001',
            'name': 'VLADIMIR PUTIN',
            'aliases': ['VLADIMIR VLADIMIROVICH PUTIN'],
            'category': 'individual',
            'nationality': 'Russian',
            'country': 'Russia',
            'date_of_birth': '1952-10-07',
            'place_of_birth': 'Leningrad, USSR',
            'passport_numbers': ['RU123456789'],
            'national_ids': ['RUS123456'],
            'addresses': ['Moscow, Russia'],
            'remarks': 'President of Russia',
            'listed_date': '2022-02-25',
        },
    ],
}


class SampleDataSource(DataSource):
    """Serves the built-in demonstration records."""

    def __init__(self, records: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.records = SAMPLE_RECORDS if records is None else records

    def fetch(self, list_name: str) -> List[ListedEntity]:
        if list_name not in self.records:
            raise DataSourceError(f"No sample data available for {list_name}")
        return [ListedEntity.from_dict(record, source=list_name) for record in self.records[list_name]]


class HttpDataSource(DataSource):
    """
    Fetches each list as JSON over HTTP.

    The endpoint for a list must return either an array of entity records or
    an object with an ``entities`` array. Records use the ListedEntity field
    names (snake_case or camelCase).
    """

    JSON_CONTENT_TYPES = ('application/json', 'text/json')

    def __init__(self, urls: Dict[str, str], timeout: float = 30,
                 user_agent: str = 'ComplianceGuard/1.0 (Compliance Tool)',
                 session: Optional[requests.Session] = None):
        """
        Args:
            urls: List name -> feed URL
            timeout: Request timeout in seconds
            user_agent: User-Agent header sent with every request
            session: Optional preconfigured requests session
        """
        self.urls = dict(urls)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': user_agent})

    def fetch(self, list_name: str) -> List[ListedEntity]:
        url = self.urls.get(list_name)
        if not url:
            raise DataSourceError(f"No feed URL configured for {list_name}", recoverable=False)

        context = ErrorContext(
            operation="fetch",
            component="http_data_source",
            additional_data={"source": list_name, "url": url}
        )

        logger.info(f"Downloading {list_name} data from {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DataSourceError(
                f"Failed to download {list_name} data: {e}",
                context=context,
                original_exception=e
            )

        content_type = response.headers.get('content-type', '').lower()
        if not any(expected in content_type for expected in self.JSON_CONTENT_TYPES):
            logger.warning(f"Unexpected content type for {list_name}: {content_type}")

        try:
            payload = response.json()
        except ValueError as e:
            raise DataParsingError(
                f"{list_name} feed did not return valid JSON: {e}",
                context=context,
                original_exception=e
            )

        records = payload.get('entities') if isinstance(payload, dict) else payload
        if not isinstance(records, list):
            raise DataParsingError(f"{list_name} feed must contain a list of entities", context=context)

        entities = [ListedEntity.from_dict(record, source=list_name) for record in records]
        logger.info(f"Downloaded {len(entities)} {list_name} records")
        return entities

    def close(self):
        self.session.close()


def create_data_source(config) -> DataSource:
    """
    Build the data source named by ``data_source.type``.

    Raises:
        ConfigurationError: For an unknown type.
    """
    source_type = config.get('data_source.type', 'sample')

    if source_type == 'sample':
        return SampleDataSource()

    if source_type == 'http':
        urls = {
            name: settings.get('url')
            for name, settings in (config.get('data_sources') or {}).items()
            if isinstance(settings, dict) and settings.get('url')
        }
        return HttpDataSource(
            urls,
            timeout=config.get('sync.fetch_timeout_seconds', 30),
            user_agent=config.get('data_source.user_agent', 'ComplianceGuard/1.0 (Compliance Tool)')
        )

    raise ConfigurationError(f"Unknown data source type: {source_type}")
