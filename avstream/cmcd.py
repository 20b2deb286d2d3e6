"""Common Media Client Data (CMCD) as specified in CTA-5004.

Servers typically read client playback information from the ``CMCD``
query parameter of a request with :func:`parse_info`, or from the CMCD
request headers with :func:`extract_info`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Mapping, NamedTuple, Optional, Union
from urllib.parse import quote_plus, unquote_plus

HEADER_REQUEST = "CMCD-Request"
HEADER_OBJECT = "CMCD-Object"
HEADER_STATUS = "CMCD-Status"
HEADER_SESSION = "CMCD-Session"

STOPPED = 0.0
REAL_TIME = 1.0
DOUBLE_TIME = 2.0

STREAM_TYPE_LIVE = "l"
STREAM_TYPE_VOD = "v"

_REQUEST_KEYS = frozenset({"bl", "dl", "mtp", "nor", "nrr", "su"})
_OBJECT_KEYS = frozenset({"br", "d", "ot", "tb"})
_STATUS_KEYS = frozenset({"bs", "rtp"})
_SESSION_KEYS = frozenset({"sid", "st", "cid", "pr", "sf"})
_RESERVED_KEYS = _REQUEST_KEYS | _OBJECT_KEYS | _STATUS_KEYS | _SESSION_KEYS

_INT_RE = re.compile(r"[+-]?[0-9]+")
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_ROUND_UNIT_US = 100_000


class CMCDError(ValueError):
    """Raised when CMCD data cannot be parsed."""


def _atoi(s: str, what: str) -> int:
    if not _INT_RE.fullmatch(s):
        raise CMCDError(f"{what}: invalid integer {s!r}")
    return int(s)


def _is_int(s: str) -> bool:
    return bool(_INT_RE.fullmatch(s))


def _quote(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _unquote(s: str) -> str:
    return s.strip('"')


def _query_unescape(s: str) -> str:
    if _BAD_ESCAPE_RE.search(s):
        raise CMCDError(f"invalid URL escape in {s!r}")
    return unquote_plus(s)


def _microseconds(td: timedelta) -> int:
    return td // timedelta(microseconds=1)


def _round_to_100ms(td: timedelta) -> int:
    """Milliseconds of td rounded half away from zero to 100ms."""
    us = _microseconds(td)
    quotient, remainder = divmod(abs(us), _ROUND_UNIT_US)
    if remainder * 2 >= _ROUND_UNIT_US:
        quotient += 1
    sign = -1 if us < 0 else 1
    return sign * quotient * 100


def _format_play_rate(rate: float) -> str:
    if rate == int(rate) and abs(rate) < 1e21:
        return str(int(rate))
    return repr(rate)


class Range(NamedTuple):
    """A byte range: an offset and an end. A negative end is open-ended."""

    offset: int = 0
    end: int = 0

    def __str__(self) -> str:
        if self.end < 0:
            return f"{self.offset}-"
        return f"{self.offset}-{self.end}"


def _parse_range(s: str) -> Range:
    offset, sep, end = s.partition("-")
    if not sep:
        raise CMCDError('parse next range request: missing range separator "-"')
    return Range(_atoi(offset, "offset"), _atoi(end, "end"))


class ObjectType(str, Enum):
    TEXT = "m"
    AUDIO = "a"
    VIDEO = "v"
    AV = "av"
    INIT = "i"
    CAPTION = "c"
    TIMED_TEXT = "tt"
    KEY = "k"
    OTHER = "o"

    def __str__(self) -> str:
        return self.value


class StreamFormat(str, Enum):
    DASH = "d"
    HLS = "h"
    SMOOTH = "s"
    OTHER = "o"

    def __str__(self) -> str:
        return self.value


@dataclass
class Request:
    """Data about the client's request."""

    buf_length: timedelta = timedelta(0)
    deadline: timedelta = timedelta(0)
    throughput: int = 0
    next: str = ""
    next_range: Range = Range()
    startup: bool = False

    def encode(self) -> str:
        attrs = []
        if self.buf_length > timedelta(0):
            attrs.append(f"bl={_round_to_100ms(self.buf_length)}")
        if self.deadline > timedelta(0):
            attrs.append(f"dl={_round_to_100ms(self.deadline)}")
        if self.throughput > 0:
            attrs.append(f"mtp={self.throughput}")
        if self.next:
            attrs.append(f"nor={_quote(quote_plus(self.next, safe=''))}")
        if tuple(self.next_range) != (0, 0):
            attrs.append(f"nrr={_quote(str(Range(*self.next_range)))}")
        if self.startup:
            attrs.append("su")
        return ",".join(attrs)


@dataclass
class Object:
    """Data about the requested object."""

    bitrate: int = 0
    duration: timedelta = timedelta(0)
    type: Optional[Union[ObjectType, str]] = None
    top_bitrate: int = 0

    def encode(self) -> str:
        attrs = []
        if self.bitrate > 0:
            attrs.append(f"br={self.bitrate}")
        if self.duration > timedelta(0):
            attrs.append(f"d={_microseconds(self.duration) // 1000}")
        object_type = "" if self.type is None else str(self.type)
        if object_type:
            # Reserved keywords are not quoted.
            attrs.append(f"ot={object_type}")
        if self.top_bitrate > 0:
            attrs.append(f"tb={self.top_bitrate}")
        return ",".join(attrs)


@dataclass
class Status:
    """Data about the client's playback status."""

    starved: bool = False
    max_throughput: int = 0

    def encode(self) -> str:
        attrs = []
        if self.starved:
            attrs.append("bs")
        if self.max_throughput > 0:
            attrs.append(f"rtp={self.max_throughput}")
        return ",".join(attrs)


@dataclass
class Session:
    """Data about the playback session."""

    id: str = ""
    stream_type: str = ""
    content_id: str = ""
    play_rate: float = REAL_TIME
    format: Optional[StreamFormat] = None

    def is_live(self) -> bool:
        return self.stream_type == STREAM_TYPE_LIVE

    def encode(self) -> str:
        attrs = []
        if self.id:
            attrs.append(f"sid={_quote(self.id)}")
        if self.content_id:
            attrs.append(f"cid={_quote(self.content_id)}")
        # Only sent when not real time: CTA-5004 page 10.
        if self.play_rate != REAL_TIME:
            attrs.append(f"pr={_format_play_rate(self.play_rate)}")
        if self.format is not None:
            attrs.append(f"sf={self.format.value}")
        return ",".join(attrs)


@dataclass
class Info:
    """All CMCD data sent by a client, including custom attributes."""

    request: Request = field(default_factory=Request)
    object: Object = field(default_factory=Object)
    status: Status = field(default_factory=Status)
    session: Session = field(default_factory=Session)
    custom: Optional[Dict[str, Any]] = None

    def encode(self) -> str:
        parts = [
            self.request.encode(),
            self.object.encode(),
            self.status.encode(),
            self.session.encode(),
        ]
        for key, value in (self.custom or {}).items():
            if isinstance(value, bool):
                parts.append(key)
            elif isinstance(value, int):
                parts.append(f"{key}={value}")
            elif isinstance(value, str):
                parts.append(f"{key}={_quote(value)}")
            else:
                parts.append(f"{key}={_quote(str(value))}")
        return ",".join(part for part in parts if part)


def _lex(s: str) -> Dict[str, str]:
    attrs: Dict[str, str] = {}
    for attr in s.strip(",").split(","):
        name, _, value = attr.partition("=")
        if name:
            attrs[name] = value
    return attrs


def _parse_request(attrs: Mapping[str, str]) -> Request:
    req = Request()
    for key, value in attrs.items():
        if key == "bl":
            req.buf_length = timedelta(milliseconds=_atoi(value, "parse buffer length"))
        elif key == "dl":
            req.deadline = timedelta(milliseconds=_atoi(value, "parse deadline"))
        elif key == "mtp":
            req.throughput = _atoi(value, "parse throughput")
        elif key == "nor":
            try:
                req.next = _query_unescape(_unquote(value))
            except CMCDError as err:
                raise CMCDError(f"decode next object request: {err}") from err
        elif key == "nrr":
            try:
                req.next_range = _parse_range(_unquote(value))
            except CMCDError as err:
                raise CMCDError(f"parse next range: {err}") from err
        elif key == "su":
            req.startup = True
    return req


def _parse_object(attrs: Mapping[str, str]) -> Object:
    obj = Object()
    for key, value in attrs.items():
        if value == "":
            continue
        if key == "br":
            obj.bitrate = _atoi(value, "parse bitrate")
        elif key == "d":
            obj.duration = timedelta(milliseconds=_atoi(value, "parse duration"))
        elif key == "ot":
            try:
                obj.type = ObjectType(value)
            except ValueError:
                obj.type = value
        elif key == "tb":
            obj.top_bitrate = _atoi(value, "parse top bitrate")
    return obj


def _parse_status(attrs: Mapping[str, str]) -> Status:
    stat = Status()
    for key, value in attrs.items():
        if key == "bs":
            stat.starved = True
        elif key == "rtp":
            stat.max_throughput = _atoi(value, "parse max throughput")
    return stat


def _parse_session(attrs: Mapping[str, str]) -> Session:
    ses = Session()
    for key, value in attrs.items():
        if key == "sid":
            ses.id = _unquote(value)
        elif key == "st":
            ses.stream_type = value
        elif key == "cid":
            ses.content_id = _unquote(value)
        elif key == "pr":
            try:
                ses.play_rate = float(value)
            except ValueError as err:
                raise CMCDError(f"play rate: invalid number {value!r}") from err
        elif key == "sf":
            if len(value) != 1:
                raise CMCDError(f"stream format: {value} is not a single character")
            try:
                ses.format = StreamFormat(value)
            except ValueError as err:
                raise CMCDError(f"stream format: unknown format {value}") from err
    # Absent play rate means real time: CTA-5004 page 10.
    if "pr" not in attrs:
        ses.play_rate = REAL_TIME
    return ses


def _parse_custom(attrs: Mapping[str, str]) -> Optional[Dict[str, Any]]:
    custom: Dict[str, Any] = {}
    for key, value in attrs.items():
        if key in _RESERVED_KEYS:
            continue
        if value == "":
            custom[key] = True
        elif _is_int(value):
            custom[key] = int(value)
        else:
            custom[key] = _unquote(value)
    return custom or None


def _parse_info(attrs: Mapping[str, str]) -> Info:
    sections = (
        ("request", _parse_request),
        ("object", _parse_object),
        ("status", _parse_status),
        ("session", _parse_session),
    )
    parsed = {}
    for name, parser in sections:
        try:
            parsed[name] = parser(attrs)
        except CMCDError as err:
            raise CMCDError(f"{name}: {err}") from err
    return Info(custom=_parse_custom(attrs), **parsed)


def parse_info(s: str) -> Info:
    """Return the Info encoded in s, typically the value of a CMCD query parameter."""
    return _parse_info(_lex(s))


def _header_get(header: Mapping[str, Any], name: str) -> str:
    wanted = name.lower()
    for key, value in header.items():
        if key.lower() != wanted:
            continue
        if isinstance(value, (list, tuple)):
            return value[0] if value else ""
        return value
    return ""


def extract_info(header: Mapping[str, Any]) -> Info:
    """Return the Info carried in the CMCD request headers of header."""
    fields = [
        _header_get(header, HEADER_REQUEST),
        _header_get(header, HEADER_OBJECT),
        _header_get(header, HEADER_STATUS),
        _header_get(header, HEADER_SESSION),
    ]
    return _parse_info(_lex(",".join(fields)))