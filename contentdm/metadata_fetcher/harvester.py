import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urljoin, urlparse

from lxml import etree

from .. import settings
from ..metadata_mapper.mappers.mapper import (
    MalformedIdentifierError, Record, RecordSource)
from ..metadata_mapper.registry import MapperRegistry, default_registry
from ..utils.credentials import Credentials
from ..utils.uri import base_of, host
from .fetchers.Fetcher import NotFoundError, TransportError
from .fetchers.oai_fetcher import OaiFetcher, oai_error, parse_records

logger = logging.getLogger(__name__)

CANONICAL_URL = re.compile(r"^(.+/)u/?\?/(.+),(\d+)$")


def parse_record_url(url: str) -> tuple[str, str, int]:
    """
    Splits a CONTENTdm item URL into (base url, collection, id). Two shapes
    are understood:
        http://path/to/contentdm/u?/[collection],[id]
        http://path/to/contentdm/.../viewer.php?CISOROOT=/[collection]&CISOPTR=[id]
    """
    match = CANONICAL_URL.match(url)
    if match:
        return match.group(1), match.group(2), int(match.group(3))

    query = parse_qs(urlparse(url).query)
    root = query.get('CISOROOT', [None])[0]
    pointer = query.get('CISOPTR', [None])[0]
    if not root or not pointer or not pointer.strip().isdigit():
        raise MalformedIdentifierError(f"Not a CONTENTdm record URL: {url}")

    collection = root[1:] if root.startswith('/') else root
    return urljoin(url, '..'), collection, int(pointer)


class Harvester(object):
    """
    Harvests qualified Dublin Core records from a CONTENTdm installation.

    The constructor must be passed the URL of the installation, usually the
    root of the server CONTENTdm runs on. Unless init_maps is False, field
    maps for every collection at the installation are initialized on
    construction.
    """

    not_found_statuses = (404,)

    def __init__(
            self,
            base_uri: str,
            registry: Optional[MapperRegistry] = None,
            credentials: Optional[Credentials] = None,
            init_maps: bool = True,
            page_size: Optional[int] = None,
            token_mode: Optional[str] = None):
        self.base_uri = base_of(base_uri)
        self.registry = registry if registry is not None else default_registry
        self.credentials = credentials
        self.page_size = page_size or settings.PAGE_SIZE
        self.token_mode = token_mode or settings.TOKEN_MODE

        if init_maps:
            self.registry.init_all(self.base_uri, credentials)

    @classmethod
    def get_record_from_url(cls, url: str, **kwargs) -> Record:
        """
        Convenience method which returns a single Record given either a
        canonical u?/collection,id URL or a URL carrying CISOROOT and
        CISOPTR; kwargs are passed to the Harvester constructor.
        """
        base_uri, collection, record_id = parse_record_url(url)
        harvester = cls(base_uri, **kwargs)
        return harvester.get_record(collection, record_id)

    def fetcher(self, collection: Optional[str] = None, **harvest_data):
        return OaiFetcher({
            'base_uri': self.base_uri,
            'collection_id': collection,
            'token_mode': self.token_mode,
            'harvest_data': harvest_data,
        })

    def collections(self) -> dict[str, str]:
        """Return a dict of collection ids and collection names"""
        return self.fetcher().list_sets()

    def record_missing(self, xml: etree._Element, records: list) -> bool:
        """
        Decides whether a GetRecord response means "no such record".
        Override for installations that signal this differently.
        """
        error = oai_error(xml)
        return not records or bool(error and error[0] == 'idDoesNotExist')

    def get_record(self, collection: str, record_id) -> Record:
        """
        Return a single Record given its collection id and ordinal position
        within the collection
        """
        identifier = f"oai:{host(self.base_uri)}:{collection}/{int(record_id)}"
        try:
            xml = self.fetcher(collection).get_record(identifier)
        except TransportError as e:
            if e.status_code in self.not_found_statuses:
                raise NotFoundError(f"{identifier} not found") from e
            raise

        records = parse_records(xml)
        if self.record_missing(xml, records):
            raise NotFoundError(f"{identifier} not found")
        return self.build_record(records[0], collection)

    def get_records(
            self,
            collection: str,
            max_records: Optional[int] = None,
            from_date=None,
            until=None,
            first: Optional[int] = None,
            page: Optional[int] = None) -> list[Record]:
        """
        Return the Records of a collection, following resumption tokens
        until the installation stops issuing them or max_records is reached.

        first (a record offset) or page (in units of page_size) resume a
        previous partial harvest with a client-built resumption token.
        """
        max_records = int(max_records or 0)
        if first is None and page is not None:
            first = int(page) * self.page_size

        fetcher = self.fetcher(
            collection, first=first, until=until, **{'from': from_date})

        result = []
        while not fetcher.finished:
            if max_records and len(result) >= max_records:
                break
            fetched_page = fetcher.fetch_page()
            result.extend(fetched_page.records)

        if max_records and len(result) > max_records:
            result = result[:max_records]

        logger.info(
            f"[{collection}]: harvested {len(result)} records "
            f"in {fetcher.write_page} pages"
        )
        return [self.build_record(record, collection) for record in result]

    def build_record(self, metadata: dict, collection: str) -> Record:
        return Record(
            metadata,
            RecordSource(self.base_uri, collection),
            registry=self.registry
        )


def get_record(url: str, **kwargs) -> Record:
    return Harvester.get_record_from_url(url, **kwargs)
