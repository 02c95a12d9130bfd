from urllib.parse import urlencode, urljoin, urlparse, urlunparse


def normalize(uri: str) -> str:
    """
    Normalizes a CONTENTdm installation URL: scheme, host, port and path with
    trailing slashes trimmed. Query strings and fragments are kept so that
    record URLs can still be inspected after normalization.
    """
    parts = urlparse(str(uri).strip())
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Not an absolute URL: {uri}")
    return urlunparse(parts._replace(path=parts.path.rstrip('/')))


def base_of(uri: str) -> str:
    """normalized installation identity, without query or fragment"""
    parts = urlparse(normalize(uri))
    return urlunparse(parts._replace(params='', query='', fragment=''))


def merge(base_uri: str, path: str) -> str:
    """
    Resolves `path` against an installation's base URL. The base URL is
    always treated as a directory, so installations living below the
    server root keep their path prefix.
    """
    return urljoin(f"{base_of(base_uri)}/", path)


def encode_query(params: dict) -> str:
    """percent-encodes query values while keeping the path-ish characters
    CONTENTdm expects to see unescaped (CISOROOT=/collection)"""
    return urlencode(
        [(k, '' if v is None else str(v)) for k, v in params.items()],
        safe='/'
    )


def host(uri: str) -> str:
    return urlparse(base_of(uri)).hostname
