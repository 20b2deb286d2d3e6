"""A client to the Cinegy Air HTTP API, version 24.1.

Typical usage creates a Client and fetches the current playlist of a
device with Client.playlist, e.g. ``Client("http://air.example.com:5521")
.playlist("video")``.
"""

from __future__ import annotations

import posixpath
import re
import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import IO, List, Optional, Union

DEFAULT_PORT = 5521
DEFAULT_ROOT = "http://127.0.0.1:5521"

_ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)
_INT_RE = re.compile(r"[+-]?[0-9]+")
_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})\.(\d{3})(Z|[+-]\d{2}:\d{2})"
)


class CairError(ValueError):
    """Raised when the engine reports an error or sends data that cannot be parsed."""


@dataclass
class Item:
    """One item of a playlist."""

    id: str = ""
    name: str = ""
    description: str = ""
    third_party_id: str = ""
    subtitle_id: str = ""
    epg_id: str = ""
    proxy_progress: str = ""
    scheduled_at: datetime = _ZERO_TIME
    duration: timedelta = timedelta(0)
    out_of_network: str = ""

    def end_time(self) -> datetime:
        """Return when the item should end: its start time plus its duration."""
        return self.scheduled_at + self.duration


@dataclass
class Playlist:
    items: List[Item] = field(default_factory=list)


@dataclass
class Status:
    """The status of the video engine."""

    active_id: str = ""
    cued_id: str = ""
    license_state: str = ""
    output_state: str = ""
    client_connected: str = ""
    client_identity: str = ""


def _parse_int(s: str, what: str) -> int:
    if not _INT_RE.fullmatch(s):
        raise CairError(f"parse {what}: invalid integer {s!r}")
    return int(s)


def parse_duration(timecode: str) -> timedelta:
    """Parse a timecode such as "12:34:56.789" (hours:minutes:seconds.milliseconds)."""
    if len(timecode) != 12:
        raise CairError("timecode does not have 12 characters")
    hours = _parse_int(timecode[:2], "hours")
    if timecode[2] != ":":
        raise CairError(f"parse minutes: expected ':', got {timecode[2]!r}")
    minutes = _parse_int(timecode[3:5], "minutes")
    if timecode[5] != ":":
        raise CairError(f"parse seconds: expected ':', got {timecode[5]!r}")
    seconds = _parse_int(timecode[6:8], "seconds")
    if timecode[8] != ".":
        raise CairError(f"parse milliseconds: expected '.', got {timecode[8]!r}")
    milliseconds = _parse_int(timecode[9:], "milliseconds")
    return timedelta(
        hours=hours, minutes=minutes, seconds=seconds, milliseconds=milliseconds
    )


def _parse_time(s: str) -> datetime:
    m = _TIME_RE.fullmatch(s)
    if not m:
        raise CairError(f"invalid time {s!r}")
    year, month, day, hour, minute, second, milli = (int(g) for g in m.groups()[:7])
    zone = m.group(8)
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(sign * offset)
    try:
        return datetime(year, month, day, hour, minute, second, milli * 1000, tzinfo=tz)
    except ValueError as err:
        raise CairError(f"invalid time {s!r}: {err}") from err


def _parse_item(elem: ET.Element) -> Item:
    get = elem.attrib.get
    try:
        scheduled_at = _parse_time(get("ScheduledAt", ""))
    except CairError as err:
        raise CairError(f"parse scheduled at: {err}") from err
    try:
        duration = parse_duration(get("Duration", ""))
    except CairError as err:
        raise CairError(f"parse duration: {err}") from err
    return Item(
        id=get("Id", ""),
        name=get("Name", ""),
        description=get("Description", ""),
        third_party_id=get("ThirdPartyId", ""),
        subtitle_id=get("SubtitleId", ""),
        epg_id=get("EpgId", ""),
        proxy_progress=get("ProxyProgress", ""),
        scheduled_at=scheduled_at,
        duration=duration,
        out_of_network=get("OutOfNetwork", ""),
    )


def _escape_ampersands(r: IO) -> str:
    # Some third-party playlists carry bare ampersands; escape them all
    # so the document parses. Line breaks are dropped.
    parts = []
    for line in r:
        if isinstance(line, (bytes, bytearray)):
            line = bytes(line).decode("utf-8")
        line = line.rstrip("\n")
        if line.endswith("\r"):
            line = line[:-1]
        parts.append(line.replace("&", "&amp;"))
    return "".join(parts)


def _parse_xml(text: Union[str, bytes], root_name: str) -> ET.Element:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as err:
        raise CairError(f"parse xml: {err}") from err
    if root.tag != root_name:
        raise CairError(f"expected element <{root_name}>, got <{root.tag}>")
    return root


def parse_playlist(r: IO) -> Playlist:
    """Parse an XML-encoded Playlist from the text or binary stream r."""
    root = _parse_xml(_escape_ampersands(r), "List")
    return Playlist(items=[_parse_item(elem) for elem in root.findall("Item")])


def parse_status(data: Union[str, bytes]) -> Status:
    """Parse an XML-encoded engine Status."""
    root = _parse_xml(data, "Status")

    def attr(child: str, name: str) -> str:
        elem = root.find(child)
        return "" if elem is None else elem.attrib.get(name, "")

    return Status(
        active_id=attr("Active", "Id"),
        cued_id=attr("Cued", "Id"),
        license_state=attr("License", "State"),
        output_state=attr("Output", "State"),
        client_connected=attr("Client", "Connected"),
        client_identity=attr("Client", "Identity"),
    )


def playlist_from_file(name: str) -> Playlist:
    """Parse the Playlist stored in the file name."""
    with open(name, "rb") as f:
        return parse_playlist(f)


class Client:
    """Communicates with the Cinegy Air API served from root."""

    def __init__(self, root: str = "", timeout: Optional[float] = None) -> None:
        self.root = root or DEFAULT_ROOT
        self.timeout = timeout

    def _get(self, path: str) -> bytes:
        kwargs = {} if self.timeout is None else {"timeout": self.timeout}
        try:
            with urllib.request.urlopen(self.root + path, **kwargs) as resp:
                return resp.read()
        except urllib.error.HTTPError as err:
            raise CairError(
                f"non-OK status code from engine: {err.code} {err.reason}"
            ) from err

    def playlist(self, device: str) -> Playlist:
        """Retrieve the current Playlist of the named device, such as "video" or "cg_0"."""
        path = posixpath.normpath(posixpath.join("/", device, "list"))
        data = self._get(path)
        return parse_playlist(data.splitlines(keepends=True))

    def status(self) -> Status:
        """Retrieve the status of the video engine."""
        data = self._get("/videos/status")
        try:
            return parse_status(data)
        except CairError as err:
            raise CairError(f"decode status: {err}") from err