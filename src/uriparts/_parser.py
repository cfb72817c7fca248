"""uriparts._parser
Eager decomposition of absolute URIs into scheme, authority, path segments,
a query mapping, and a fragment.
Nothing is percent-decoded; every field is a verbatim substring of the input.
"""

import dataclasses
import logging
import re
import types

from typing import Literal, Mapping, Self, get_args

_logger: logging.Logger = logging.getLogger(__name__)

_DEFAULT_ENCODING: str = "ascii"

# Each of these ABNF rules is from RFC 3986 or 5234.

# ALPHA = %x41-5A / %x61-7A
_ALPHA: str = r"[A-Za-z]"

# DIGIT = %x30-39
_DIGIT: str = r"[0-9]"

# scheme = ALPHA *( ALPHA / DIGIT / "+" / "-" / "." )
_SCHEME: str = rf"(?P<scheme>{_ALPHA}(?:{_ALPHA}|{_DIGIT}|[+\-.])*):"
_SCHEME_PAT: re.Pattern[str] = re.compile(_SCHEME)

# port = *DIGIT (we additionally require at least one)
_PORT_PAT: re.Pattern[str] = re.compile(rf"{_DIGIT}+")

_PORT_MAX: int = 0xFFFF

# The text of each component runs up to the first character that ends it.
_AUTHORITY_PAT: re.Pattern[str] = re.compile(r"[^/?#]*")
_PATH_PAT: re.Pattern[str] = re.compile(r"[^?#]*")
_QUERY_PAT: re.Pattern[str] = re.compile(r"[^#]*")

DuplicateKeys = Literal["last", "first"]
_DUPLICATE_KEY_POLICIES: tuple[str, ...] = get_args(DuplicateKeys)


class ParseError(ValueError):
    """Base class for every failure raised by parse()."""

    def __init__(self: Self, message: str, uri: str) -> None:
        super().__init__(message)
        self.uri: str = uri


class MissingScheme(ParseError):
    pass


class InvalidPort(ParseError):
    pass


class MalformedAuthority(ParseError):
    pass


@dataclasses.dataclass(frozen=True)
class Authority:
    """[ userinfo "@" ] host [ ":" port ]"""

    userinfo: str | None
    host: str
    port: int | None

    @property
    def username(self: Self) -> str | None:
        if self.userinfo is None:
            return None
        return self.userinfo.partition(":")[0]

    @property
    def password(self: Self) -> str | None:
        if self.userinfo is None:
            return None
        _, colon, password = self.userinfo.partition(":")
        if len(colon) == 0:
            return None
        return password

    def serialize(self: Self) -> str:
        result: str = ""
        if self.userinfo is not None:
            result += f"{self.userinfo}@"
        result += self.host
        if self.port is not None:
            result += f":{self.port}"
        return result

    def __str__(self: Self) -> str:
        return self.serialize()


@dataclasses.dataclass(frozen=True)
class ParsedUri:
    """An absolute URI broken into its components. Build these with parse()."""

    scheme: str
    authority: Authority | None
    path: tuple[str, ...]
    query: Mapping[str, str] | None
    fragment: str | None

    @property
    def userinfo(self: Self) -> str | None:
        return self.authority.userinfo if self.authority is not None else None

    @property
    def host(self: Self) -> str | None:
        return self.authority.host if self.authority is not None else None

    @property
    def port(self: Self) -> int | None:
        return self.authority.port if self.authority is not None else None

    @property
    def is_path_absolute(self: Self) -> bool:
        return len(self.path) > 0 and self.path[0] == ""

    def serialize(self: Self) -> str:
        """Reassembles the components with the delimiters they were split on.
        Query pairs always come back as key=value, so the output is equal
        component-wise to the input, not necessarily byte for byte.
        """
        result: str = f"{self.scheme}:"
        if self.authority is not None:
            result += f"//{self.authority.serialize()}"
        result += "/".join(self.path)
        if self.query is not None:
            result += "?" + "&".join(f"{key}={value}" for key, value in self.query.items())
        if self.fragment is not None:
            result += f"#{self.fragment}"
        return result

    def __str__(self: Self) -> str:
        return self.serialize()


def _scan_until(data: str, pattern: re.Pattern[str]) -> tuple[str, str]:
    """Splits data after the longest prefix that pattern matches.
    e.g. _scan_until("host/path?q", _AUTHORITY_PAT) == ("host", "/path?q")
    """
    end: int = pattern.match(data).end()
    return data[:end], data[end:]


def _parse_scheme(data: str) -> tuple[str, str]:
    m: re.Match[str] | None = _SCHEME_PAT.match(data)
    if m is None:
        raise MissingScheme("no scheme before the first delimiter", data)
    return m["scheme"], data[m.end() :]


def _parse_port(raw_port: str, uri: str) -> int:
    if _PORT_PAT.fullmatch(raw_port) is None:
        raise InvalidPort(f"port {raw_port!r} is not a decimal number", uri)
    port: int = int(raw_port, base=10)
    if port > _PORT_MAX:
        raise InvalidPort(f"port {port} does not fit in 16 bits", uri)
    return port


def _parse_authority(data: str, uri: str) -> tuple[Authority | None, str]:
    if not data.startswith("//"):
        return None, data
    raw, rest = _scan_until(data[len("//") :], _AUTHORITY_PAT)

    userinfo: str | None
    userinfo, at, hostport = raw.rpartition("@")
    if len(at) == 0:
        userinfo = None

    host, colon, raw_port = hostport.rpartition(":")
    port: int | None = None
    if len(colon) == 0:
        host = hostport
    else:
        port = _parse_port(raw_port, uri)

    if len(host) == 0:
        raise MalformedAuthority("empty host", uri)
    # Without IPv6 literals a host never legitimately contains ":".
    if ":" in host:
        raise MalformedAuthority(f"host {host!r} contains ':'", uri)
    return Authority(userinfo=userinfo, host=host, port=port), rest


def _parse_path(data: str) -> tuple[tuple[str, ...], str]:
    raw, rest = _scan_until(data, _PATH_PAT)
    if len(raw) == 0:
        return (), rest
    return tuple(raw.split("/")), rest


def _parse_query(data: str, duplicate_keys: DuplicateKeys) -> tuple[Mapping[str, str] | None, str]:
    if not data.startswith("?"):
        return None, data
    raw, rest = _scan_until(data[len("?") :], _QUERY_PAT)

    pairs: dict[str, str] = {}
    for pair in raw.split("&"):
        if len(pair) == 0:
            continue
        key, _, value = pair.partition("=")
        if duplicate_keys == "first":
            pairs.setdefault(key, value)
        else:
            pairs[key] = value
    return types.MappingProxyType(pairs), rest


def _parse_fragment(data: str) -> tuple[str | None, str]:
    if not data.startswith("#"):
        return None, data
    return data[len("#") :], ""


def parse(uri: str | bytes, *, duplicate_keys: DuplicateKeys = "last") -> ParsedUri:
    """Parses an absolute URI.
    Raises MissingScheme, InvalidPort, or MalformedAuthority (all ParseErrors, and so ValueErrors).
    When a query key repeats, duplicate_keys chooses whether the "last" or the "first" value is kept.
    """
    if duplicate_keys not in _DUPLICATE_KEY_POLICIES:
        raise ValueError(f"duplicate_keys must be one of {_DUPLICATE_KEY_POLICIES}, not {duplicate_keys!r}")
    if isinstance(uri, bytes):
        uri = uri.decode(_DEFAULT_ENCODING)

    try:
        scheme, rest = _parse_scheme(uri)
        authority, rest = _parse_authority(rest, uri)
        path, rest = _parse_path(rest)
        query, rest = _parse_query(rest, duplicate_keys)
        fragment, rest = _parse_fragment(rest)
    except ParseError as e:
        _logger.debug("rejected %r: %s", uri, e)
        raise

    if len(rest) > 0:
        raise RuntimeError(f"unconsumed input {rest!r}")
    return ParsedUri(scheme=scheme, authority=authority, path=path, query=query, fragment=fragment)
