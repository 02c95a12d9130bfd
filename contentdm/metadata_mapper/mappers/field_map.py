import logging
import re
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

from lxml import etree

logger = logging.getLogger(__name__)

QDC_NAMESPACE = "http://epubs.cclrc.ac.uk/xmlns/qdc/"
NAMESPACES = {
    "qdc": QDC_NAMESPACE,
    "dc": "http://purl.org/dc/elements/1.1/",
    "dcterms": "http://purl.org/dc/terms/",
}

Value = Union[str, list[str]]


def split_qualified_key(key: str) -> tuple[str, str]:
    """'dcterms.created' -> ('http://purl.org/dc/terms/', 'created')"""
    prefix, _, local_name = key.partition(".")
    if not local_name or prefix not in NAMESPACES:
        raise ValueError(f"Not a qualified Dublin Core key: {key}")
    return NAMESPACES[prefix], local_name


def split_values(value: str) -> list[str]:
    values = re.split(r";\s*", value)
    while values and not values[-1]:
        values.pop()
    return values


def collapse(values: list[str]) -> Value:
    if len(values) == 1:
        return values[0]
    return values


def humanize(tag: str) -> str:
    """camelCase to Human Readable Label"""
    tag = re.sub(r"(\S)([A-Z])", r"\1 \2", tag)
    return re.sub(r"\b('?[a-z])", lambda m: m.group(1).capitalize(), tag)


class GenericMapper(object):
    """
    Fallback formatter for records of collections that have no FieldMap:
    every raw key is rendered, in the record's own key order.
    """

    def map(self, record) -> dict[str, Value]:
        return {
            key: collapse(list(values))
            for key, values in record.metadata.items()
        }

    def to_xml(self, record, pretty_print: bool = True,
               xml_declaration: bool = True) -> str:
        """Serialize the given Record to a Qualified Dublin Core XML string"""
        root = self.qualifieddc()
        for key, values in record.metadata.items():
            for value in values:
                self.add_element(root, key, value)
        return self.serialize_xml(root, pretty_print, xml_declaration)

    def to_html(self, record, pretty_print: bool = True) -> str:
        """Serialize the given Record to an HTML string"""
        span = etree.Element("span")
        for key, values in record.metadata.items():
            values = [value for value in values if value]
            if not values:
                continue
            tag = key.partition(".")[2]
            self.add_paragraph(span, humanize(tag or key), collapse(values))
        return self.serialize_html(span, pretty_print)

    # Serialization helpers
    @staticmethod
    def qualifieddc() -> etree._Element:
        return etree.Element(f"{{{QDC_NAMESPACE}}}qualifieddc",
                             nsmap=NAMESPACES)

    @staticmethod
    def add_element(root: etree._Element, key: str, value: str):
        try:
            namespace, local_name = split_qualified_key(key)
        except ValueError:
            logger.warning(f"not serializing {key}: unknown namespace prefix")
            return None
        element = etree.SubElement(root, f"{{{namespace}}}{local_name}")
        element.text = value
        return element

    @staticmethod
    def add_paragraph(span: etree._Element, label: str, value: Value):
        paragraph = etree.SubElement(span, "p")
        bold = etree.SubElement(paragraph, "b")
        bold.text = f"{label}:"
        if isinstance(value, list):
            bold.tail = " "
            line_break = etree.SubElement(paragraph, "br")
            for item in value:
                line_break.tail = item
                line_break = etree.SubElement(paragraph, "br")
        else:
            bold.tail = f" {value}"
        return paragraph

    @staticmethod
    def serialize_xml(root, pretty_print, xml_declaration) -> str:
        return etree.tostring(
            root,
            encoding="UTF-8",
            xml_declaration=xml_declaration,
            pretty_print=pretty_print
        ).decode("utf-8")

    @staticmethod
    def serialize_html(span, pretty_print) -> str:
        return etree.tostring(
            span, encoding="unicode", pretty_print=pretty_print)


class FieldMap(GenericMapper):
    """
    Label, visibility and output order of the fields of one CONTENTdm
    collection.

    fields maps a qualified key to one label per occurrence of that key, so
    repeated elements (several dc.creator values, say) can carry distinct
    labels. order lists the labels to render; labels left out of it stay
    available through map() but are never serialized.
    """

    def __init__(self, fields: Mapping[str, Iterable[str]],
                 order: Optional[Iterable[str]] = None):
        self._fields = {key: tuple(labels) for key, labels in fields.items()}
        self._order = tuple(order or ())

        self._positions = {}
        for key, labels in self._fields.items():
            for index, label in enumerate(labels):
                self._positions.setdefault(label, (key, index))

        unknown = [label for label in self._order
                   if label not in self._positions]
        if unknown:
            raise ValueError(f"Ordered labels missing from fields: {unknown}")

    @property
    def fields(self) -> Mapping[str, tuple[str, ...]]:
        return MappingProxyType(self._fields)

    @property
    def order(self) -> tuple[str, ...]:
        return self._order

    def position(self, label: str) -> Optional[tuple[str, int]]:
        """(qualified key, occurrence index) of a label"""
        return self._positions.get(label)

    def map(self, record) -> dict[str, Value]:
        """Returns a dict of field labels and data"""
        data = record.metadata
        result = {}
        for key, labels in self._fields.items():
            values = data.get(key, [])
            for index, label in enumerate(labels):
                if index < len(values):
                    result[label] = collapse(split_values(values[index]))
        return result

    def to_xml(self, record, pretty_print: bool = True,
               xml_declaration: bool = True) -> str:
        data = self.map(record)
        root = self.qualifieddc()
        for label in self._order:
            value = data.get(label)
            if value is None or value == []:
                continue
            key, _ = self._positions[label]
            for item in (value if isinstance(value, list) else [value]):
                self.add_element(root, key, item)
        return self.serialize_xml(root, pretty_print, xml_declaration)

    def to_html(self, record, pretty_print: bool = True) -> str:
        data = self.map(record)
        span = etree.Element("span")
        for label in self._order:
            value = data.get(label)
            if not value:
                continue
            self.add_paragraph(span, label, value)
        return self.serialize_html(span, pretty_print)

    def __eq__(self, other):
        if not isinstance(other, FieldMap):
            return NotImplemented
        return self._fields == other._fields and self._order == other._order

    def __repr__(self):
        return f"FieldMap(fields={self._fields!r}, order={self._order!r})"
