import re
from functools import lru_cache
from typing import Optional, Pattern

from keytar.exceptions import RedirectUriNotAllowed
from keytar.realm import RealmConfig

WILDCARD = "*"


@lru_cache(maxsize=256)
def compile_redirect_pattern(pattern: str) -> Pattern[str]:
    """``*`` matches any run of characters (empty included); the rest is literal.

    A ``:`` right before ``*`` is optional, so ``http://localhost:*`` also
    covers ``http://localhost/cb``.
    """
    parts = pattern.split(WILDCARD)
    body = ""
    for part in parts[:-1]:
        if part.endswith(":"):
            body += re.escape(part[:-1]) + "(?::)?.*"
        else:
            body += re.escape(part) + ".*"
    body += re.escape(parts[-1])
    return re.compile(body, re.DOTALL)


def matches(pattern: str, redirect_uri: str) -> bool:
    if WILDCARD in pattern:
        return compile_redirect_pattern(pattern).fullmatch(redirect_uri) is not None
    return pattern == redirect_uri


def is_allowed(realm: RealmConfig, client_id: Optional[str], redirect_uri: Optional[str]) -> bool:
    client = realm.get_client(client_id)
    if client is None or redirect_uri is None:
        return False
    return any(matches(p, redirect_uri) for p in client.redirect_uris)


def check_redirect_uri(realm: RealmConfig, client_id: str, redirect_uri: str) -> None:
    if not is_allowed(realm, client_id, redirect_uri):
        raise RedirectUriNotAllowed(client_id, redirect_uri)
