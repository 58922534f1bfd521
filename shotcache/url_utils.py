import ipaddress
import re
from urllib.parse import urlsplit, urlunsplit, quote

from shotcache.config import KEY_PREFIX

DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters left untouched when re-encoding path and query.
# '%' is kept so already-escaped sequences are not double-encoded.
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = _PATH_SAFE + "?"

_SCHEME_RE = re.compile(r"^https?://")
_HOST_RE = re.compile(r"[a-z0-9.-]+")


def _remove_dot_segments(path: str) -> str:
    """RFC 3986 5.2.4, enough for absolute paths."""
    output = []
    for segment in path.split("/"):
        if segment == "..":
            if len(output) > 1:
                output.pop()
        elif segment != ".":
            output.append(segment)
    result = "/".join(output)
    if path.endswith(("/.", "/..")):
        result += "/"
    return result


def _normalize_host(host: str) -> str:
    """
    ASCII form of the host. IDN labels become punycode, IPv6 literals are
    bracketed and compressed. Raises ValueError for anything else.
    """
    if ":" in host:
        try:
            return f"[{ipaddress.IPv6Address(host).compressed}]"
        except ValueError as e:
            raise ValueError(f"bad IPv6 host: {host}") from e

    try:
        ascii_host = host.encode("idna").decode("ascii").lower()
    except UnicodeError as e:
        raise ValueError(f"bad host: {host}") from e
    if not _HOST_RE.fullmatch(ascii_host):
        raise ValueError(f"bad host: {host}")
    return ascii_host


def normalize_url(url: str) -> str:
    """
    Canonical form used both for navigation and for cache keys:
    - scheme and host lowercased, default ports dropped
    - dot segments resolved, unsafe characters percent-encoded
    - root path represented as empty (no trailing slash at root)
    - query and fragment kept verbatim
    Raises ValueError if the URL is not an absolute http(s) URL.
    """
    p = urlsplit(url.strip())

    scheme = p.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        raise ValueError("scheme must be http or https")

    host = p.hostname
    if not host:
        raise ValueError("missing host")

    try:
        port = p.port
    except ValueError as e:
        raise ValueError(f"bad port: {e}") from e

    netloc = _normalize_host(host)
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"
    if p.username is not None:
        userinfo = p.username if p.password is None else f"{p.username}:{p.password}"
        netloc = f"{userinfo}@{netloc}"

    path = quote(_remove_dot_segments(p.path), safe=_PATH_SAFE)
    if path == "/":
        path = ""

    query = quote(p.query, safe=_QUERY_SAFE)

    return urlunsplit((scheme, netloc, path, query, p.fragment))


def flatten_url(normalized_url: str) -> str:
    """Drop the scheme and turn path separators into '_'."""
    return _SCHEME_RE.sub("", normalized_url, count=1).replace("/", "_")


def build_cache_key(url: str, width: int, height: int, quality: int) -> str:
    """
    Storage key for one rendering. Assumes url came out of normalize_url.
    Key equality is cache equality: every varying dimension is encoded in the key.
    NOTE: distinct URLs that flatten to the same string (a literal '_' versus
    a replaced '/') share a key. Known and accepted.
    """
    return f"{KEY_PREFIX}/{flatten_url(url)}_{width}x{height}_q{quality}.jpg"
