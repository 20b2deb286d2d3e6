"""Reading and writing messages of the SIP protocol (RFC 3261)."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import BinaryIO, Dict, List, Optional, Tuple, Union

METHOD_REGISTER = "REGISTER"
METHOD_INVITE = "INVITE"
METHOD_ACK = "ACK"
METHOD_CANCEL = "CANCEL"
METHOD_BYE = "BYE"
METHOD_OPTIONS = "OPTIONS"

VERSION = "SIP/2.0"

_MAGIC_VIA_COOKIE = "z9hG4bK"
_DEFAULT_MAX_FORWARDS = 70
_TOKEN_CHARS = frozenset(
    "!#$%&'*+-.^_`|~0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
)
_SCHEME_RE = re.compile(r"([A-Za-z][A-Za-z0-9+.\-]*):(.*)", re.DOTALL)

Header = Dict[str, List[str]]


class SIPError(ValueError):
    """Raised when a SIP message cannot be read, parsed or written."""


def _canonical_key(key: str) -> str:
    if not key or any(c not in _TOKEN_CHARS for c in key):
        return key
    out = []
    upper = True
    for c in key:
        out.append(c.upper() if upper else c.lower())
        upper = c == "-"
    return "".join(out)


def _header_get(header: Header, key: str) -> str:
    values = header.get(_canonical_key(key))
    return values[0] if values else ""


def _header_set(header: Header, key: str, value: str) -> None:
    header[_canonical_key(key)] = [value]


@dataclass(frozen=True)
class URI:
    """A URI such as sip:alice@example.com, written enclosed in angle brackets."""

    scheme: str = ""
    opaque: str = ""
    path: str = ""

    def _text(self) -> str:
        if self.scheme:
            return f"{self.scheme}:{self.opaque or self.path}"
        return self.path

    def __str__(self) -> str:
        return "<" + self._text() + ">"


def _parse_uri(s: str) -> URI:
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in s):
        raise SIPError(f"invalid control character in URI {s!r}")
    m = _SCHEME_RE.fullmatch(s)
    if m is None:
        if ":" in s.split("/", 1)[0]:
            raise SIPError(f"parse {s!r}: first path segment in URL cannot contain colon")
        return URI(path=s)
    scheme, rest = m.group(1).lower(), m.group(2)
    if rest.startswith("/"):
        return URI(scheme=scheme, path=rest)
    return URI(scheme=scheme, opaque=rest)


@dataclass
class Address:
    """A name, URI and tag, as carried in the To and From header fields."""

    name: str = ""
    uri: URI = field(default_factory=URI)
    tag: str = ""

    def __str__(self) -> str:
        tag = f";tag={self.tag}" if self.tag else ""
        if self.name:
            return f"{self.name} {self.uri}{tag}"
        return f"{self.uri}{tag}"


def parse_address(s: str) -> Address:
    """Parse an address such as "Alice <sip:alice@example.com>;tag=1234"."""
    s = s.strip()
    before, sep, tag = s.partition(";")
    if sep:
        if not tag.startswith("tag="):
            raise SIPError("bad tag: missing 'tag=' prefix")
        tag = tag[4:]
    addr = Address(tag=tag)

    # A bare URI without angle brackets.
    try:
        addr.uri = _parse_uri(before)
        return addr
    except SIPError:
        pass

    # A URI in angle brackets without a name.
    if before.startswith("<") and before.endswith(">"):
        addr.uri = _parse_uri(before.strip("<>"))
        return addr

    i = before.find("<")
    if i < 0:
        raise SIPError("missing angle bracket after name")
    j = before.find(">")
    if j < 0:
        raise SIPError("missing closing angle bracket")
    addr.name = before[:i].strip()
    try:
        addr.uri = _parse_uri(before[i + 1 : j])
    except SIPError as err:
        raise SIPError(f"parse uri: {err}") from err
    return addr


class Transport(IntEnum):
    UDP = 0
    TCP = 1


@dataclass
class Via:
    """The Via header field of requests."""

    # Transport for subsequent transactions.
    transport: int = Transport.UDP
    # Host name or IP address to which responses are sent.
    address: str = ""
    # Identifies transactions from a particular user agent.
    branch: str = ""

    def __str__(self) -> str:
        try:
            tport = Transport(self.transport).name
        except ValueError:
            tport = "unknown"
        return f"SIP/2.0/{tport} {self.address};branch={_MAGIC_VIA_COOKIE}{self.branch}"


@dataclass
class Request:
    method: str = ""
    uri: str = ""
    header: Header = field(default_factory=dict)
    content_length: int = 0
    content_type: str = ""
    sequence: int = 0
    to: Address = field(default_factory=Address)
    from_: Address = field(default_factory=Address)
    via: Via = field(default_factory=Via)
    body: Optional[Union[bytes, BinaryIO]] = None


@dataclass
class CommandSequence:
    number: int = 0
    method: str = ""


@dataclass
class Response:
    status: str = ""
    status_code: int = 0
    header: Header = field(default_factory=dict)
    content_length: int = 0
    body: Optional[BinaryIO] = None


@dataclass
class Message:
    """A message split into its start line, header and unread body."""

    start_line: Tuple[str, str, str]
    header: Header
    body: BinaryIO


def parse_start_line(text: str) -> Tuple[str, str, str]:
    """Split a request line or status line into its three fields."""
    fields = text.split()
    if len(fields) != 3:
        raise SIPError(f"expected 3 fields, read {len(fields)}")
    return (fields[0], fields[1], fields[2])


def _as_stream(rd: Union[str, bytes, BinaryIO]) -> BinaryIO:
    if isinstance(rd, str):
        return io.BytesIO(rd.encode("utf-8"))
    if isinstance(rd, (bytes, bytearray)):
        return io.BytesIO(bytes(rd))
    return rd


def _read_line(rd: BinaryIO) -> Optional[str]:
    raw = rd.readline()
    if not raw:
        return None
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


def _read_header(rd: BinaryIO) -> Header:
    lines: List[str] = []
    while True:
        line = _read_line(rd)
        if line is None:
            raise SIPError("read header: EOF")
        if line == "":
            break
        if line[0] in " \t":
            if not lines:
                raise SIPError(f"read header: malformed MIME header initial line: {line}")
            lines[-1] = lines[-1].rstrip(" \t") + " " + line.strip(" \t")
        else:
            lines.append(line)

    header: Header = {}
    for line in lines:
        key, sep, value = line.partition(":")
        if not sep or not key or any(c not in _TOKEN_CHARS for c in key):
            raise SIPError(f"read header: malformed MIME header line: {line}")
        header.setdefault(_canonical_key(key), []).append(value.strip(" \t"))
    return header


def read_message(rd: Union[str, bytes, BinaryIO]) -> Message:
    """Read the start line and header of a message; the body is left unread."""
    stream = _as_stream(rd)
    line = _read_line(stream)
    if line is None:
        raise SIPError("read start line: EOF")
    try:
        start = parse_start_line(line)
    except SIPError as err:
        raise SIPError(f"parse start line: {err}") from err
    header = _read_header(stream)
    return Message(start_line=start, header=header, body=stream)


def _content_length(header: Header) -> int:
    s = _header_get(header, "Content-Length")
    if not s:
        return 0
    if not re.fullmatch(r"[+-]?[0-9]+", s):
        raise SIPError(f"parse content-length: invalid integer {s!r}")
    return int(s)


def parse_request(msg: Message) -> Request:
    """Interpret msg as a request."""
    method, uri, version = msg.start_line
    if version != VERSION:
        raise SIPError(f"unknown version {version!r}")
    return Request(
        method=method,
        uri=uri,
        header=msg.header,
        content_length=_content_length(msg.header),
        body=msg.body,
    )


def read_request(r: Union[str, bytes, BinaryIO]) -> Request:
    """Read a request from r."""
    return parse_request(read_message(r))


def parse_response(msg: Message) -> Response:
    """Interpret msg as a response."""
    version, code, status = msg.start_line
    if version != VERSION:
        raise SIPError(f"unknown version {version}")
    if not re.fullmatch(r"[+-]?[0-9]+", code):
        raise SIPError(f"bad status code {code!r}")
    return Response(
        status=status,
        status_code=int(code),
        header=msg.header,
        content_length=_content_length(msg.header),
        body=msg.body,
    )


def write_request(w: BinaryIO, req: Request) -> int:
    """Write req to w, filling in the To, From, Via and Max-Forwards fields.

    Returns the number of bytes written.
    """
    for name in ("CSeq", "Call-ID"):
        if not _header_get(req.header, name):
            raise SIPError(f"missing field {name} in header")
    if not req.to.uri._text():
        raise SIPError("empty uri in to header field")
    if not req.from_.uri._text():
        raise SIPError("empty uri in from header field")
    if not req.via.address:
        raise SIPError("empty address in via header field")
    if not req.via.branch:
        raise SIPError("empty branch in via header field")

    _header_set(req.header, "To", str(req.to))
    _header_set(req.header, "From", str(req.from_))
    _header_set(req.header, "Via", str(req.via))
    if not _header_get(req.header, "Max-Forwards"):
        _header_set(req.header, "Max-Forwards", str(_DEFAULT_MAX_FORWARDS))
    if req.content_length > 0:
        _header_set(req.header, "Content-Length", str(req.content_length))

    lines = [f"{req.method} {req.uri} SIP/2.0\r\n"]
    for key, values in req.header.items():
        lines.extend(f"{key}: {value}\r\n" for value in values)
    lines.append("\r\n")
    head = "".join(lines).encode("utf-8")
    w.write(head)
    n = len(head)

    body = req.body
    if body is None:
        return n
    if isinstance(body, (bytes, bytearray)):
        w.write(body)
        return n + len(body)
    while True:
        chunk = body.read(32 * 1024)
        if not chunk:
            break
        w.write(chunk)
        n += len(chunk)
    return n