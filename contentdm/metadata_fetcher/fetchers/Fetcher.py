import logging

from dataclasses import dataclass, field
from typing import Optional

from ...utils.uri import base_of


logger = logging.getLogger(__name__)


class TransportError(Exception):
    '''Raised when a request to the CONTENTdm installation fails'''

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(Exception):
    '''Raised when a single-record fetch finds no matching record'''


@dataclass
class FetchedPage:
    document_count: int
    records: list = field(default_factory=list)
    resumption_token: Optional[str] = None


class Fetcher(object):
    def __init__(self, params: dict):
        """
        params: dict
            base_uri: str
                root of the CONTENTdm installation
            collection_id: str, optional
                CONTENTdm collection alias
            write_page: int, optional
                number of the page about to be fetched
        """
        self.base_uri = base_of(params['base_uri'])
        self.collection_id = params.get('collection_id')
        self.write_page = params.get('write_page', 0)
        self.finished = False

    def fetch_page(self) -> FetchedPage:
        """
        returns a FetchedPage with the following attributes:
            document_count: int
            records: list of raw records, in document order
            resumption_token: str or None

        raises a TransportError if the fetch request fails
        """
        request = self.build_fetch_request()
        logger.debug(
            f"[{self.collection_id}]: fetching page {self.write_page} "
            f"with {request}"
        )
        response = self.request(request)

        record_count = self.check_page(response)
        if not record_count:
            logger.warning(
                f"[{self.collection_id}]: no records found "
                f"on page {self.write_page}"
            )

        records = self.get_records(response)
        self.increment(response)

        return FetchedPage(
            record_count, records, getattr(self, 'resumption_token', None))

    def request(self, request: dict):
        raise NotImplementedError

    def check_page(self, response) -> int:
        raise NotImplementedError

    def build_fetch_request(self) -> dict:
        """build parameters for the installation's request"""
        raise NotImplementedError

    def get_records(self, response) -> list:
        """parses a response into a list of raw records"""
        raise NotImplementedError

    def increment(self, response):
        """increment internal state for fetching the next page"""
        self.write_page = self.write_page + 1
