"""
Administrator credentials for screen-scraping the CONTENTdm console.

Credentials can be given as:
  * a (username, password) pair
  * a {"user": username, "pass": password} mapping
    ("username" / "password" keys are accepted too)
  * a zero-argument callable returning any of the above, including another
    callable

Callables are resolved lazily, the first time a collection actually needs
them.
"""
from typing import Callable, Mapping, Optional, Union

MAX_RESOLUTION_DEPTH = 10

Credentials = Union[
    tuple[str, str], list, Mapping[str, str], Callable[[], "Credentials"]]


class CredentialsError(ValueError):
    '''Raised when credentials cannot be resolved to a username/password'''


def resolve_credentials(
        authinfo: Optional[Credentials],
        max_depth: int = MAX_RESOLUTION_DEPTH) -> Optional[tuple[str, str]]:
    depth = 0
    while callable(authinfo):
        if depth >= max_depth:
            raise CredentialsError(
                f"credential supplier still deferred after {max_depth} calls")
        authinfo = authinfo()
        depth += 1

    if authinfo is None:
        return None

    if isinstance(authinfo, Mapping):
        user = authinfo.get('user', authinfo.get('username'))
        password = authinfo.get('pass', authinfo.get('password'))
        if user is None or password is None:
            raise CredentialsError(
                "credential mapping needs 'user' and 'pass' keys")
        return (str(user), str(password))

    if isinstance(authinfo, (tuple, list)) and len(authinfo) == 2:
        return (str(authinfo[0]), str(authinfo[1]))

    raise CredentialsError(
        f"unsupported credentials of type {type(authinfo).__name__}")
