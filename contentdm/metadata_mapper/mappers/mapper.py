import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from ...utils.uri import base_of, encode_query, merge
from ..registry import MapperRegistry, default_registry
from .field_map import GenericMapper

IDENTIFIER_KEY = "dc.identifier"

# .../collection,id at the end of a permalink
IDENTITY = re.compile(r"/([^/]+),(\d+)$")
PERMALINK_TAIL = re.compile(r"u/?\?/[^/\t]+,\d+$")

IMAGE_DEFAULTS = {
    "DMSCALE": 100,
    "DMWIDTH": 0,
    "DMHEIGHT": 0,
    "DMX": 0,
    "DMY": 0,
}
IMAGE_OPTIONS = {
    "width": "DMWIDTH",
    "height": "DMHEIGHT",
    "scale": "DMSCALE",
}


class MalformedIdentifierError(ValueError):
    '''Raised when a permalink or record URL does not name collection,id'''


@dataclass
class RecordSource:
    base_uri: str
    collection: Optional[str] = None
    id: Optional[int] = None


class Record(object):
    """
    One harvested CONTENTdm item: its raw qualified Dublin Core metadata,
    {"dc.title": ["..."], ...}, and where it came from.

    The collection and the item's sequential id are read back from the
    permalink stored as the record's last dc.identifier.
    """

    def __init__(
            self,
            metadata: Mapping[str, Any],
            source: Union[RecordSource, Mapping[str, Any]],
            registry: Optional[MapperRegistry] = None):
        self.metadata: dict[str, list[str]] = {
            key: [values] if isinstance(values, str) else list(values)
            for key, values in metadata.items()
        }
        if isinstance(source, Mapping):
            source = RecordSource(**source)
        self.source = RecordSource(
            base_of(source.base_uri), source.collection, source.id)
        self.registry = registry if registry is not None else default_registry

        self.fix_permalink()
        self.select_id()

    def fix_permalink(self):
        """
        Single-record responses sometimes carry the permalink as two URLs
        joined by a tab; keep what follows the last tab, resolved against
        the installation.
        """
        identifiers = self.metadata.get(IDENTIFIER_KEY)
        if not identifiers or "\t" not in identifiers[-1]:
            return

        tail = identifiers[-1].split("\t")[-1].strip()
        match = PERMALINK_TAIL.search(tail)
        identifiers[-1] = merge(
            self.source.base_uri, match.group(0) if match else tail)

    def select_id(self):
        identifiers = self.metadata.get(IDENTIFIER_KEY)
        if not identifiers:
            raise MalformedIdentifierError(
                f"[{self.source.collection}]: record has no {IDENTIFIER_KEY}")

        match = IDENTITY.search(identifiers[-1].strip())
        if not match:
            raise MalformedIdentifierError(
                f"[{self.source.collection}]: cannot find collection,id "
                f"in {identifiers[-1]!r}"
            )
        self.source.collection = match.group(1)
        self.source.id = int(match.group(2))
        return self

    @property
    def permalink(self) -> str:
        return merge(
            self.source.base_uri,
            f"u?/{self.source.collection},{self.source.id}"
        )

    def img_href(self, options: Optional[Mapping[str, Any]] = None,
                 **kwargs) -> str:
        """
        URL of the item's image as rendered by getimage.exe. width, height
        and scale may be given by name; any other key is passed through as
        a raw getimage.exe parameter.
        """
        params = {
            "CISOROOT": f"/{self.source.collection}",
            "CISOPTR": self.source.id,
            **IMAGE_DEFAULTS
        }
        for key, value in {**(options or {}), **kwargs}.items():
            params[IMAGE_OPTIONS.get(key, key)] = value
        return merge(
            self.source.base_uri, f"cgi-bin/getimage.exe?{encode_query(params)}")

    def thumbnail_href(self) -> str:
        params = {
            "CISOROOT": f"/{self.source.collection}",
            "CISOPTR": self.source.id
        }
        return merge(
            self.source.base_uri, f"cgi-bin/thumbnail.exe?{encode_query(params)}")

    @property
    def mapper(self) -> GenericMapper:
        """
        The FieldMap initialized for this Record's collection, or a
        GenericMapper when the collection is unmapped
        """
        field_map = self.registry.get(
            self.source.base_uri, self.source.collection)
        return field_map if field_map is not None else GenericMapper()

    def to_dict(self) -> dict[str, Any]:
        return self.mapper.map(self)

    def to_xml(self, **options) -> str:
        """Serialize the Record to a Qualified Dublin Core XML string"""
        return self.mapper.to_xml(self, **options)

    def to_html(self, **options) -> str:
        """Serialize the Record to an HTML string"""
        return self.mapper.to_html(self, **options)

    def __repr__(self):
        return (f"Record({self.source.base_uri!r}, "
                f"{self.source.collection!r}, {self.source.id!r})")
