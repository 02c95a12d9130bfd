import pytest
from lxml import etree

from ..mappers.field_map import (
    FieldMap, GenericMapper, humanize, split_qualified_key, split_values)
from ..mappers.mapper import Record, RecordSource
from ..registry import MapperRegistry
from ...metadata_fetcher.fetchers.oai_fetcher import parse_records
from ...metadata_fetcher.test.fixtures.oai_fixture_generator import BASE_URI

PERMALINK = f"{BASE_URI}/u?/maps,7"


def make_record(metadata):
    return Record(metadata, RecordSource(BASE_URI, "maps"), MapperRegistry())


@pytest.fixture
def record():
    return make_record({
        "dc.title": ["Bird's-eye view of Sacramento"],
        "dc.creator": ["Koch, Augustus", "Britton & Rey"],
        "dc.subject": ["Rivers; Bridges;  Levees"],
        "dc.description": ["Staff note"],
        "dcterms.created": ["1870"],
        "dc.identifier": ["local-7", PERMALINK],
    })


@pytest.fixture
def field_map():
    return FieldMap(
        {
            "dc.title": ["Title"],
            "dc.creator": ["Artist", "Lithographer"],
            "dc.subject": ["Subjects"],
            "dc.description": ["Notes"],
            "dcterms.created": ["Date"],
            "dc.identifier": ["Local Number", "Permalink"],
        },
        ["Title", "Artist", "Lithographer", "Subjects", "Date"]
    )


def test_map_collapses_single_values(record, field_map):
    data = field_map.map(record)

    assert data["Title"] == "Bird's-eye view of Sacramento"
    assert data["Artist"] == "Koch, Augustus"
    assert data["Lithographer"] == "Britton & Rey"
    assert data["Subjects"] == ["Rivers", "Bridges", "Levees"]
    assert data["Permalink"] == PERMALINK


def test_map_split_examples():
    field_map = FieldMap({"dc.subject": ["Subject"]}, ["Subject"])

    assert field_map.map(make_record({
        "dc.subject": ["A; B"], "dc.identifier": [PERMALINK]})) == {
            "Subject": ["A", "B"]}
    assert field_map.map(make_record({
        "dc.subject": ["A"], "dc.identifier": [PERMALINK]})) == {
            "Subject": "A"}


def test_map_only_returns_present_labels(field_map):
    record = make_record({
        "dc.title": ["Only a title"],
        "dc.identifier": [PERMALINK],
    })
    data = field_map.map(record)

    assert data == {"Title": "Only a title", "Local Number": PERMALINK}
    labels = {label for labels in field_map.fields.values() for label in labels}
    assert set(data) <= labels


def test_hidden_labels_are_mapped_but_not_rendered(record, field_map):
    assert field_map.map(record)["Notes"] == "Staff note"

    html = field_map.to_html(record)
    xml = field_map.to_xml(record)
    assert "Notes" not in html
    assert "Staff note" not in html
    assert "Staff note" not in xml
    assert PERMALINK not in xml


def test_to_xml_follows_order(record, field_map):
    root = etree.fromstring(field_map.to_xml(record).encode("utf-8"))

    assert etree.QName(root).localname == "qualifieddc"
    assert [(child.prefix, etree.QName(child).localname, child.text)
            for child in root] == [
        ("dc", "title", "Bird's-eye view of Sacramento"),
        ("dc", "creator", "Koch, Augustus"),
        ("dc", "creator", "Britton & Rey"),
        ("dc", "subject", "Rivers"),
        ("dc", "subject", "Bridges"),
        ("dc", "subject", "Levees"),
        ("dcterms", "created", "1870"),
    ]


def test_to_xml_declaration_option(record, field_map):
    assert field_map.to_xml(record).startswith("<?xml")
    assert field_map.to_xml(record, xml_declaration=False).startswith(
        "<qdc:qualifieddc")


def test_to_html(field_map):
    record = make_record({
        "dc.title": ["A Map"],
        "dc.subject": ["Rivers; Bridges"],
        "dc.identifier": [PERMALINK],
    })

    assert field_map.to_html(record, pretty_print=False) == (
        "<span>"
        "<p><b>Title:</b> A Map</p>"
        "<p><b>Subjects:</b> <br/>Rivers<br/>Bridges<br/></p>"
        "</span>"
    )


def test_round_trip_through_xml(field_map):
    metadata = {
        "dc.title": ["A Map"],
        "dc.creator": ["Koch, Augustus", "Britton & Rey"],
        "dcterms.created": ["1870"],
        "dc.identifier": ["local-7", PERMALINK],
    }
    record = make_record(metadata)
    full_map = FieldMap(
        field_map.fields,
        ["Title", "Artist", "Lithographer", "Date", "Local Number",
         "Permalink"]
    )

    for mapper in (full_map, GenericMapper()):
        root = etree.fromstring(mapper.to_xml(record).encode("utf-8"))
        assert parse_records(root) == [metadata]


def test_generic_mapper_renders_every_key(record):
    root = etree.fromstring(GenericMapper().to_xml(record).encode("utf-8"))

    assert parse_records(root) == [record.metadata]


def test_generic_mapper_html_humanizes_tags():
    record = make_record({
        "dcterms.tableOfContents": ["Plate 1", "Plate 2"],
        "dcterms.isPartOf": ["Atlas"],
        "dc.rights": [""],
        "dc.identifier": [PERMALINK],
    })

    assert GenericMapper().to_html(record, pretty_print=False) == (
        "<span>"
        "<p><b>Table Of Contents:</b> <br/>Plate 1<br/>Plate 2<br/></p>"
        "<p><b>Is Part Of:</b> Atlas</p>"
        f"<p><b>Identifier:</b> {PERMALINK}</p>"
        "</span>"
    )


@pytest.mark.parametrize("tag,label", [
    ("title", "Title"),
    ("dateCreated", "Date Created"),
    ("isPartOf", "Is Part Of"),
    ("tableOfContents", "Table Of Contents"),
])
def test_humanize(tag, label):
    assert humanize(tag) == label


def test_split_values_drops_trailing_empties():
    assert split_values("A;") == ["A"]
    assert split_values("A;  B; C") == ["A", "B", "C"]
    assert split_values("") == []


def test_split_qualified_key():
    assert split_qualified_key("dcterms.created") == (
        "http://purl.org/dc/terms/", "created")
    with pytest.raises(ValueError):
        split_qualified_key("mods.title")


def test_field_map_is_read_only(field_map):
    with pytest.raises(TypeError):
        field_map.fields["dc.title"] = ("Name",)
    with pytest.raises(AttributeError):
        field_map.order = ()


def test_order_labels_must_exist_in_fields():
    with pytest.raises(ValueError):
        FieldMap({"dc.title": ["Title"]}, ["Title", "Creator"])


def test_position(field_map):
    assert field_map.position("Lithographer") == ("dc.creator", 1)
    assert field_map.position("Nothing") is None
