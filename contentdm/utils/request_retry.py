from typing import Optional

import requests
from requests.adapters import HTTPAdapter, Retry

from .. import settings


def configure_http_session(
        retries: Optional[int] = None,
        auth: Optional[tuple[str, str]] = None) -> requests.Session:
    """
    Builds the session used for static configuration files and the
    administrator console. CONTENTdm harvests are not retried unless
    CONTENTDM_HTTP_RETRIES says otherwise.
    """
    if retries is None:
        retries = settings.HTTP_RETRIES

    http = requests.Session()
    retry_strategy = Retry(
        total=retries,
        backoff_factor=2,
        status_forcelist=[413, 429, 500, 502, 503, 504]
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    http.mount("https://", adapter)
    http.mount("http://", adapter)
    http.headers.update({"User-Agent": settings.USER_AGENT})
    if auth:
        http.auth = auth
    return http
