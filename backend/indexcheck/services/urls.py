"""URL canonicalization, validation and de-duplication.

Canonical form: lower-cased scheme and host, no fragment, no default port,
runs of slashes in the path collapsed, and no trailing slash except for the
root path. Path and query are percent-encoded but otherwise kept as given,
case included.
"""
import re
from dataclasses import dataclass, field
from typing import Iterable, List
from urllib.parse import quote, urlsplit, urlunsplit

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

_SLASH_RUN = re.compile(r"/{2,}")
# characters left as-is when percent-encoding; existing %XX escapes are kept
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = _PATH_SAFE + "?"


class InvalidUrl(ValueError):
    pass


@dataclass
class UrlError:
    line: int
    url: str
    error: str


@dataclass
class ParsedUrls:
    valid: List[str] = field(default_factory=list)
    errors: List[UrlError] = field(default_factory=list)


@dataclass
class DedupResult:
    unique: List[str]
    duplicates: int


def normalize(raw: str) -> str:
    raw = (raw or "").strip()
    if not raw:
        raise InvalidUrl("Invalid URL: empty")

    try:
        parts = urlsplit(raw)
        host = parts.hostname
        port = parts.port
    except ValueError as e:
        raise InvalidUrl(f"Invalid URL: {e}") from e

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidUrl("Invalid URL: only http and https are supported")
    if not host or any(c.isspace() for c in parts.netloc):
        raise InvalidUrl("Invalid URL: missing or malformed host")

    netloc = host
    if ":" in host:
        netloc = f"[{host}]"
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo += ":" + parts.password
        netloc = f"{userinfo}@{netloc}"

    path = quote(_SLASH_RUN.sub("/", parts.path), safe=_PATH_SAFE) or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]

    return urlunsplit((scheme, netloc, path, quote(parts.query, safe=_QUERY_SAFE), ""))


def is_valid_url(raw: str) -> bool:
    try:
        normalize(raw)
    except InvalidUrl:
        return False
    return True


def parse_list(text: str) -> ParsedUrls:
    """Normalize one URL per line, keeping going past bad lines.

    Blank lines are skipped; line numbers in errors are 1-based.
    """
    out = ParsedUrls()
    for i, line in enumerate((text or "").split("\n"), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            out.valid.append(normalize(line))
        except InvalidUrl as e:
            out.errors.append(UrlError(line=i, url=line, error=str(e)))
    return out


def deduplicate(urls: Iterable[str]) -> DedupResult:
    urls = list(urls)
    seen = set()
    unique = []
    for u in urls:
        if u in seen:
            continue
        seen.add(u)
        unique.append(u)
    return DedupResult(unique=unique, duplicates=len(urls) - len(unique))


def canonicalize(text: str) -> ParsedUrls:
    return parse_list(text)
