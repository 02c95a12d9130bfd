from typing import Optional
from xml.sax.saxutils import escape

from faker import Faker

BASE_URI = "http://cdm.example.org"
OAI_URL = f"{BASE_URI}/cgi-bin/oai.exe"

OAI_NAMESPACES = (
    'xmlns="http://www.openarchives.org/OAI/2.0/" '
    'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"'
)
QDC_NAMESPACES = (
    'xmlns:qdc="http://epubs.cclrc.ac.uk/xmlns/qdc/" '
    'xmlns:dc="http://purl.org/dc/elements/1.1/" '
    'xmlns:dcterms="http://purl.org/dc/terms/"'
)


class OaiFixtureGenerator:
    """
    Generates CONTENTdm OAI-PMH responses carrying qualified Dublin Core.

    Field values come from Faker and never contain semicolons, so each
    value maps to a single label.
    """

    def __init__(self, base_uri: str = BASE_URI, collection: str = "maps"):
        self.faker = Faker()
        self.base_uri = base_uri
        self.collection = collection

    def permalink(self, record_id: int, collection: Optional[str] = None):
        return f"{self.base_uri}/u?/{collection or self.collection},{record_id}"

    def record(self, record_id: int, **fields) -> dict[str, list[str]]:
        metadata = {
            "dc.title": [self.faker.sentence(nb_words=4).replace(";", "")],
            "dc.creator": [self.faker.name()],
            "dcterms.created": [str(self.faker.year())],
            "dc.identifier": [
                f"local-{record_id}", self.permalink(record_id)],
        }
        metadata.update(fields)
        return metadata

    def records(self, first_id: int, count: int) -> list[dict]:
        return [self.record(first_id + i) for i in range(count)]

    def qualifieddc(self, metadata: dict[str, list[str]]) -> str:
        elements = "".join(
            f"<{key.replace('.', ':', 1)}>{escape(value)}"
            f"</{key.replace('.', ':', 1)}>"
            for key, values in metadata.items()
            for value in values
        )
        return f"<qdc:qualifieddc {QDC_NAMESPACES}>{elements}</qdc:qualifieddc>"

    def oai_record(self, metadata: dict[str, list[str]]) -> str:
        permalink = metadata.get("dc.identifier", [""])[-1]
        record_id = permalink.rsplit(",", 1)[-1]
        return (
            "<record><header>"
            f"<identifier>oai:cdm.example.org:{self.collection}/{record_id}"
            "</identifier>"
            "<datestamp>2010-01-01</datestamp>"
            f"<setSpec>{self.collection}</setSpec>"
            "</header>"
            f"<metadata>{self.qualifieddc(metadata)}</metadata>"
            "</record>"
        )

    def envelope(self, body: str) -> str:
        return (
            '<?xml version="1.0" encoding="UTF-8"?>'
            f"<OAI-PMH {OAI_NAMESPACES}>"
            "<responseDate>2010-01-01T00:00:00Z</responseDate>"
            f"<request>{OAI_URL}</request>"
            f"{body}"
            "</OAI-PMH>"
        )

    def list_records(self, records: list[dict],
                     token: Optional[str] = None,
                     empty_token: bool = False) -> str:
        body = "".join(self.oai_record(record) for record in records)
        if token:
            body += f"<resumptionToken>{escape(token)}</resumptionToken>"
        elif empty_token:
            body += "<resumptionToken/>"
        return self.envelope(f"<ListRecords>{body}</ListRecords>")

    def pages(self, tokens: list[Optional[str]], per_page: int = 2) -> list[str]:
        """one ListRecords page per token, record ids counting up from 1"""
        return [
            self.list_records(
                self.records(page * per_page + 1, per_page), token)
            for page, token in enumerate(tokens)
        ]

    def get_record(self, metadata: dict[str, list[str]]) -> str:
        return self.envelope(
            f"<GetRecord>{self.oai_record(metadata)}</GetRecord>")

    def error(self, code: str, message: str = "") -> str:
        return self.envelope(f'<error code="{code}">{escape(message)}</error>')

    def list_sets(self, sets: dict[str, str]) -> str:
        body = "".join(
            f"<set><setSpec>{escape(spec)}</setSpec>"
            f"<setName>{escape(name)}</setName></set>"
            for spec, name in sets.items()
        )
        return self.envelope(f"<ListSets>{body}</ListSets>")
