"""
Field maps for CONTENTdm collections.

A FieldMap can be screen-scraped from a CONTENTdm installation or defined
programmatically with assign_map(). Two scraping strategies exist:

  * static files: the installation-wide dc.txt dictionary of field codes
    plus each collection's index/etc/config.txt
  * the administrator console, which needs basic-auth credentials for an
    administrative account

Maps are kept for the lifetime of the registry and keyed by installation
and collection.
"""
import logging
import re
import threading
from typing import Iterable, Mapping, Optional, Union

import requests
from lxml import etree, html

from .. import settings
from ..metadata_fetcher.fetchers.Fetcher import TransportError
from ..metadata_fetcher.fetchers.oai_fetcher import OaiFetcher
from ..utils.credentials import (
    Credentials, CredentialsError, resolve_credentials)
from ..utils.request_retry import configure_http_session
from ..utils.uri import base_of, merge
from .mappers.field_map import FieldMap

logger = logging.getLogger(__name__)

DC_MAPPING = 'DC_MAPPING'
PERMALINK_LABEL = 'Permalink'
PERMALINK_KEY = 'dc.identifier'

# cell positions on the administrator console's field table
ADMIN_LABEL_CELL = 0
ADMIN_CODE_CELL = 1
ADMIN_DC_CELL = 2
ADMIN_HIDE_CELL = 3
ADMIN_HIDDEN_VALUES = ('hide', 'yes')


class MissingConfigurationError(Exception):
    '''Raised when a collection's field configuration cannot be found'''


def signature(base_uri: str, collection: str) -> str:
    return f"{base_of(base_uri)} :: {collection}"


def qualify(parts: list[str]) -> str:
    if len(parts) == 1:
        return f"dc.{parts[0]}"
    return f"dcterms.{parts[1]}"


def normalize_field_name(field_name: str) -> str:
    """
    'Title' -> 'dc.title', 'Date-Created' -> 'dcterms.created',
    'Table Of Contents' -> 'dc.tableOfContents'
    """
    folded = re.sub(
        r"\s+[a-z]",
        lambda m: m.group(0).upper().strip(),
        field_name.lower()
    )
    parts = folded.split('-')
    while len(parts) > 1 and not parts[-1]:
        parts.pop()
    return qualify(parts)


class MapperRegistry(object):

    def __init__(self, credentials: Optional[Credentials] = None):
        """
        credentials: default administrator credentials; when given (or
        passed to init_map), maps are scraped from the administrator
        console instead of the static configuration files
        """
        self.credentials = credentials
        self._maps: dict[str, FieldMap] = {}
        self._dc_mappings: dict[str, dict[str, str]] = {}
        self._lock = threading.Lock()

    def maps(self) -> list[str]:
        return list(self._maps.keys())

    def mapped(self, base_uri: str, collection: str) -> bool:
        """True if a FieldMap is initialized for the collection"""
        return signature(base_uri, collection) in self._maps

    def get(self, base_uri: str, collection: str) -> Optional[FieldMap]:
        """
        Returns the FieldMap for the given collection, or None if it has
        not been initialized or the collection does not exist
        """
        return self._maps.get(signature(base_uri, collection))

    def assign_map(
            self,
            base_uri: str,
            collection: str,
            fields: Union[FieldMap, Mapping[str, Iterable[str]]],
            order: Optional[Iterable[str]] = None) -> FieldMap:
        """
        Assigns a map, either a FieldMap or a fields/order combination, to
        a collection, replacing any map it had. A FieldMap already carries
        its order, so passing both is a TypeError.
        """
        if isinstance(fields, FieldMap):
            if order is not None:
                raise TypeError(
                    "order cannot be given together with a FieldMap")
            field_map = fields
        else:
            field_map = FieldMap(fields, order)
        with self._lock:
            self._maps[signature(base_uri, collection)] = field_map
        return field_map

    def init_all(
            self,
            base_uri: str,
            credentials: Optional[Credentials] = None
    ) -> dict[str, Optional[FieldMap]]:
        """
        Initializes FieldMaps for all collections at the installation. A
        collection that cannot be mapped is logged and left unmapped.
        """
        uri = base_of(base_uri)
        collections = OaiFetcher({'base_uri': uri}).list_sets()
        logger.debug(f"initializing {len(collections)} field maps at {uri}")

        results = {}
        for collection in collections:
            try:
                results[collection] = self.init_map(uri, collection, credentials)
            except (TransportError, CredentialsError,
                    MissingConfigurationError) as e:
                logger.error(
                    f"[{collection}]: unable to initialize field map: {e}")
                results[collection] = None
        return results

    def init_map(
            self,
            base_uri: str,
            collection: str,
            credentials: Optional[Credentials] = None) -> Optional[FieldMap]:
        """
        Initializes the FieldMap for one collection. With credentials (here
        or on the registry) the administrator console is scraped, see
        contentdm.utils.credentials for the accepted forms; otherwise the
        static configuration files are read.

        Returns None when the collection has no configuration file or its
        administrator page cannot be parsed.
        """
        uri = base_of(base_uri)
        authinfo = credentials if credentials is not None else self.credentials
        auth = resolve_credentials(authinfo)

        try:
            if auth:
                field_map = self.scrape_admin_map(uri, collection, auth)
            else:
                field_map = self.load_static_map(uri, collection)
        except MissingConfigurationError as e:
            logger.warning(f"[{collection}]: {e}")
            return None

        return self.assign_map(uri, collection, field_map)

    # Static file strategy
    def dc_mapping(self, base_uri: str) -> dict[str, str]:
        """field code -> qualified key, fetched once per installation"""
        key = signature(base_uri, DC_MAPPING)
        dc_map = self._dc_mappings.get(key)
        if dc_map is not None:
            return dc_map

        dc_map = {}
        for line in self.fetch_text(merge(base_uri, 'dc.txt')).splitlines():
            field_properties = line.strip().split(':')
            if len(field_properties) < 2:
                continue
            field_code = field_properties[1].strip()
            dc_map[field_code] = normalize_field_name(field_properties[0])

        with self._lock:
            self._dc_mappings[key] = dc_map
        return dc_map

    def load_static_map(self, base_uri: str, collection: str) -> FieldMap:
        dc_map = self.dc_mapping(base_uri)

        config_url = merge(base_uri, f"{collection}/index/etc/config.txt")
        try:
            config = self.fetch_text(config_url)
        except TransportError as e:
            if e.status_code is None:
                raise
            raise MissingConfigurationError(
                f"no field configuration at {config_url}") from e

        fields = {}
        order = []
        for line in config.splitlines():
            if not line.strip():
                continue
            field_properties = line.rstrip('\r\n').split(':')
            field_label = field_properties[0]
            field_code = field_properties[-1].strip()
            dc_field = dc_map.get(field_code)
            if dc_field is None:
                logger.debug(
                    f"[{collection}]: {field_label} ({field_code}) "
                    "has no Dublin Core mapping"
                )
                continue
            fields.setdefault(dc_field, []).append(field_label)
            hidden = (len(field_properties) >= 3
                      and field_properties[-3] == 'HIDE')
            if not hidden:
                order.append(field_label)

        fields.setdefault(PERMALINK_KEY, []).append(PERMALINK_LABEL)
        return FieldMap(fields, order)

    # Administrator console strategy
    def scrape_admin_map(
            self,
            base_uri: str,
            collection: str,
            auth: tuple[str, str]) -> FieldMap:
        page_url = merge(
            base_uri, settings.ADMIN_FIELDS_PATH.format(collection=collection))
        try:
            page = html.fromstring(self.fetch_text(page_url, auth=auth))
        except (etree.ParserError, etree.XMLSyntaxError) as e:
            raise MissingConfigurationError(
                f"unparseable administrator page at {page_url}: {e}") from e

        fields = {}
        order = []
        for row in page.xpath('//tr[td]'):
            cells = [cell.text_content().strip() for cell in row.xpath('td')]
            if len(cells) <= ADMIN_HIDE_CELL:
                continue
            field_label = cells[ADMIN_LABEL_CELL]
            field_code = cells[ADMIN_CODE_CELL]
            dc_token = cells[ADMIN_DC_CELL]
            if not field_label or not dc_token or dc_token.lower() == 'none':
                logger.debug(
                    f"[{collection}]: {field_label} ({field_code}) "
                    "has no Dublin Core mapping"
                )
                continue

            # qualified key from the DC mapping column, not the field code
            dc_field = normalize_field_name(dc_token)
            fields.setdefault(dc_field, []).append(field_label)
            if cells[ADMIN_HIDE_CELL].lower() not in ADMIN_HIDDEN_VALUES:
                order.append(field_label)
            logger.debug(
                f"[{collection}]: {field_code} -> {dc_field} as {field_label}")

        fields.setdefault(PERMALINK_KEY, []).append(PERMALINK_LABEL)
        return FieldMap(fields, order)

    def fetch_text(self, url: str,
                   auth: Optional[tuple[str, str]] = None) -> str:
        http = configure_http_session(auth=auth)
        try:
            response = http.get(url, timeout=settings.HTTP_TIMEOUT)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise TransportError(
                f"unable to fetch {url}: {e}",
                status_code=e.response.status_code
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"unable to fetch {url}: {e}") from e
        return response.text


def default_credentials() -> Optional[tuple[str, str]]:
    if settings.ADMIN_USER and settings.ADMIN_PASSWORD:
        return (settings.ADMIN_USER, settings.ADMIN_PASSWORD)
    return None


default_registry = MapperRegistry(credentials=default_credentials)
