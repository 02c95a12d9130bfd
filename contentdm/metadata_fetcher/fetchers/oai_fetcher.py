import logging
from typing import Optional

import requests
from lxml import etree
from sickle import Sickle

from ... import settings
from ...utils.uri import merge
from .Fetcher import Fetcher, TransportError

logger = logging.getLogger(__name__)

OAI_NAMESPACE = 'http://www.openarchives.org/OAI/2.0/'
QDC_NAMESPACE = 'http://epubs.cclrc.ac.uk/xmlns/qdc/'
NAMESPACE = {'oai2': OAI_NAMESPACE, 'qdc': QDC_NAMESPACE}
QDC_TAG = f'{{{QDC_NAMESPACE}}}qualifieddc'

# prefixes for records served with a default namespace
PREFIXES = {
    'http://purl.org/dc/elements/1.1/': 'dc',
    'http://purl.org/dc/terms/': 'dcterms',
}

TOKEN_MODES = ('server', 'synthetic')

# OAI errors that describe an empty result rather than a failure
EMPTY_RESULT_ERRORS = ('noRecordsMatch',)


class OaiProtocolError(TransportError):
    '''Raised when the OAI-PMH response carries an error element'''

    def __init__(self, code: str, message: str):
        super().__init__(f"{code}: {message}")
        self.code = code


def oai_error(xml: etree._Element) -> Optional[tuple[str, str]]:
    error = xml.find('oai2:error', NAMESPACE)
    if error is None:
        return None
    return error.get('code', ''), (error.text or '').strip()


def parse_records(xml: etree._Element) -> list[dict[str, list[str]]]:
    """
    Decodes every qdc:qualifieddc payload in an OAI-PMH response into a raw
    record: {"<prefix>.<local-name>": [value, ...]}, values in document
    order with duplicates preserved.
    """
    if xml.tag == QDC_TAG:
        payloads = [xml]
    else:
        payloads = xml.iterfind('.//qdc:qualifieddc', NAMESPACE)

    records = []
    for qdc in payloads:
        metadata = {}
        for child in qdc:
            if not isinstance(child.tag, str):
                continue
            qname = etree.QName(child)
            prefix = child.prefix or PREFIXES.get(qname.namespace)
            if not prefix:
                logger.warning(
                    f"skipping element {child.tag}: unknown namespace")
                continue
            key = f"{prefix}.{qname.localname}"
            metadata.setdefault(key, []).append(''.join(child.itertext()))
        records.append(metadata)
    return records


def parse_sets(xml: etree._Element) -> dict[str, str]:
    sets = {}
    for oai_set in xml.iterfind('.//oai2:set', NAMESPACE):
        set_spec = oai_set.findtext('oai2:setSpec', '', NAMESPACE)
        sets[set_spec.strip()] = oai_set.findtext(
            'oai2:setName', '', NAMESPACE).strip()
    return sets


def format_date(value) -> Optional[str]:
    if value is None or value == '':
        return None
    if hasattr(value, 'strftime'):
        return value.strftime('%Y-%m-%d')
    return str(value)


class OaiFetcher(Fetcher):

    def __init__(self, params: dict):
        """
        params: dict, in addition to Fetcher's
            harvest_data: dict, optional
                metadata_prefix: str
                from: str, date or datetime
                until: str, date or datetime
                first: int, offset of the first record; implies a
                    client-synthesized resumption token
            token_mode: "server" or "synthetic"
        """
        super(OaiFetcher, self).__init__(params)

        self.oai = dict(params.get('harvest_data') or {})
        self.metadata_prefix = (
            self.oai.get('metadata_prefix') or settings.METADATA_PREFIX)
        self.token_mode = params.get('token_mode') or settings.TOKEN_MODE
        if self.token_mode not in TOKEN_MODES:
            raise ValueError(
                f"token_mode must be one of {TOKEN_MODES}, "
                f"not {self.token_mode!r}"
            )
        self.resumption_token = None

        self.endpoint = merge(self.base_uri, settings.OAI_PATH)
        self.sickle = Sickle(
            self.endpoint,
            max_retries=settings.HTTP_RETRIES,
            encoding='utf-8',
            timeout=settings.HTTP_TIMEOUT,
            headers={"User-Agent": settings.USER_AGENT},
        )

    def synthetic_token(self) -> str:
        return ":".join([
            str(self.collection_id),
            format_date(self.oai.get('from')) or '',
            format_date(self.oai.get('until')) or '',
            self.metadata_prefix,
            str(int(self.oai.get('first') or 0))
        ])

    def build_fetch_request(self) -> dict:
        request = {'verb': 'ListRecords'}
        if self.resumption_token:
            request['resumptionToken'] = self.resumption_token
        elif (self.token_mode == 'synthetic'
                or self.oai.get('first') is not None):
            request['resumptionToken'] = self.synthetic_token()
        else:
            request['set'] = self.collection_id
            request['metadataPrefix'] = self.metadata_prefix
            for param in ('from', 'until'):
                value = format_date(self.oai.get(param))
                if value:
                    request[param] = value
        return request

    def request(self, request: dict) -> etree._Element:
        try:
            response = self.sickle.harvest(**request)
            xml = response.xml
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise TransportError(
                f"[{self.collection_id}]: unable to fetch {request} "
                f"from {self.endpoint}: {e}",
                status_code=status
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(
                f"[{self.collection_id}]: unable to fetch {request} "
                f"from {self.endpoint}: {e}"
            ) from e
        except etree.XMLSyntaxError as e:
            raise TransportError(
                f"[{self.collection_id}]: unparseable response to "
                f"{request}: {e}"
            ) from e

        if xml is None:
            raise TransportError(
                f"[{self.collection_id}]: empty response to {request}")
        return xml

    def check_errors(self, xml: etree._Element, allowed=EMPTY_RESULT_ERRORS):
        error = oai_error(xml)
        if error and error[0] not in allowed:
            raise OaiProtocolError(*error)
        return error

    def check_page(self, xml: etree._Element) -> int:
        self.check_errors(xml)
        hits = len(xml.findall('.//qdc:qualifieddc', NAMESPACE))
        if hits > 0:
            logger.debug(
                f"[{self.collection_id}]: fetched page {self.write_page} - "
                f"{hits} hits"
            )
        return hits

    def get_records(self, xml: etree._Element) -> list:
        return parse_records(xml)

    def increment(self, xml: etree._Element):
        super(OaiFetcher, self).increment(xml)

        # if there is a resumption token, then increment
        token_node = xml.find(
            'oai2:ListRecords/oai2:resumptionToken', NAMESPACE)
        token = None
        if token_node is not None and token_node.text:
            token = token_node.text.strip() or None

        self.resumption_token = token
        self.finished = token is None

    def get_record(self, identifier: str) -> etree._Element:
        """single GetRecord request; idDoesNotExist is left to the caller"""
        xml = self.request({
            'verb': 'GetRecord',
            'identifier': identifier,
            'metadataPrefix': self.metadata_prefix
        })
        self.check_errors(xml, allowed=('idDoesNotExist',))
        return xml

    def list_sets(self) -> dict[str, str]:
        xml = self.request({'verb': 'ListSets'})
        self.check_errors(xml, allowed=('noSetHierarchy',))
        return parse_sets(xml)
