"""Data types of HLS m3u8 playlists as specified in RFC 8216."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

MIME_TYPE = "application/vnd.apple.mpegurl"

TAG_START = "#EXT"
TAG_HEAD = TAG_START + "M3U"
TAG_VERSION = "#EXT-X-VERSION"
TAG_VARIANT = "#EXT-X-STREAM-INF"
TAG_RENDITION = "#EXT-X-MEDIA"
TAG_PLAYLIST_TYPE = "#EXT-X-PLAYLIST-TYPE"
TAG_TARGET_DURATION = "#EXT-X-TARGETDURATION"
TAG_MEDIA_SEQUENCE = "#EXT-X-MEDIA-SEQUENCE"
TAG_END_LIST = "#EXT-X-ENDLIST"
TAG_INDEPENDENT_SEGMENTS = "#EXT-X-INDEPENDENT-SEGMENTS"
TAG_SESSION_DATA = "#EXT-X-SESSION-DATA"

# Media segment tags, RFC 8216 section 4.4.4.
TAG_SEGMENT_DURATION = "#EXTINF"
TAG_BYTE_RANGE = "#EXT-X-BYTERANGE"
TAG_DISCONTINUITY = "#EXT-X-DISCONTINUITY"
TAG_KEY = "#EXT-X-KEY"
TAG_MAP = "#EXT-X-MAP"
TAG_DATE_TIME = "#EXT-X-PROGRAM-DATE-TIME"
TAG_GAP = "#EXT-X-GAP"
TAG_BITRATE = "#EXT-X-BITRATE"
TAG_PART = "#EXT-X-PART"
TAG_DATE_RANGE = "#EXT-X-DATERANGE"

DEFAULT_KEY_FORMAT = "identity"

# May be the value of Variant.closed_captions to explicitly signal that
# no closed captions are available.
NO_CLOSED_CAPTIONS = "NONE"

CHARACTERISTIC_TRANSCRIBES_DIALOG = "public.accessibility.transcribes-spoken-dialog"
CHARACTERISTIC_DESCRIBES_MUSIC_AND_SOUND = "public.accessibility.transcribes-spoken-dialog"
CHARACTERISTIC_EASY_TO_READ = "public.easy-to-read"
CHARACTERISTIC_DESCRIBES_VIDEO = "public.accessibility.describes-video"

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def quote(s: str) -> str:
    """Return s as a double-quoted string with special characters escaped."""
    out = []
    for ch in s:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif not ch.isprintable():
            code = ord(ch)
            out.append(f"\\x{code:02x}" if code < 0x100 else f"\\u{code:04x}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


class EncryptMethod(IntEnum):
    NONE = 0
    AES_128 = 1
    SAMPLE_AES = 2

    def __str__(self) -> str:
        return _ENCRYPT_NAMES[self]


_ENCRYPT_NAMES = {
    EncryptMethod.NONE: "NONE",
    EncryptMethod.AES_128: "AES-128",
    EncryptMethod.SAMPLE_AES: "SAMPLE-AES",
}


class PlaylistType(IntEnum):
    NONE = 0
    EVENT = 1
    VOD = 2

    def __str__(self) -> str:
        return {PlaylistType.EVENT: "EVENT", PlaylistType.VOD: "VOD"}.get(self, "invalid")


class MediaType(IntEnum):
    AUDIO = 0
    VIDEO = 1
    SUBTITLES = 2
    CLOSED_CAPTIONS = 3

    def __str__(self) -> str:
        return _MEDIA_NAMES[self]


_MEDIA_NAMES = {
    MediaType.AUDIO: "AUDIO",
    MediaType.VIDEO: "VIDEO",
    MediaType.SUBTITLES: "SUBTITLES",
    MediaType.CLOSED_CAPTIONS: "CLOSED-CAPTIONS",
}


class HDCPLevel(IntEnum):
    NONE = 0
    TYPE_0 = 1
    TYPE_1 = 2

    def __str__(self) -> str:
        return _HDCP_NAMES[self]


_HDCP_NAMES = {
    HDCPLevel.NONE: "NONE",
    HDCPLevel.TYPE_0: "TYPE-0",
    HDCPLevel.TYPE_1: "TYPE-1",
}


class ByteRange(NamedTuple):
    """A sub-range of a resource, written as "n" or "n@o"."""

    length: int = 0
    offset: int = 0

    def __str__(self) -> str:
        if self.offset == 0:
            return str(self.length)
        return f"{self.length}@{self.offset}"


@dataclass
class Key:
    """The EXT-X-KEY tag (RFC 8216 section 4.3.2.4): how to decrypt segments."""

    method: EncryptMethod = EncryptMethod.NONE
    # Where to obtain the key.
    uri: str = ""
    format: str = ""
    # Major version first, then minor versions.
    format_versions: Optional[List[int]] = None
    # 128-bit initialisation vector.
    iv: bytes = bytes(16)

    def __post_init__(self) -> None:
        if len(self.iv) != 16:
            raise ValueError(f"initialisation vector must be 16 bytes, have {len(self.iv)}")

    def __str__(self) -> str:
        attrs = [
            f"METHOD={EncryptMethod(self.method)}",
            f"URI={quote(self.uri)}",
            f"IV=0x{bytes(self.iv).hex()}",
        ]
        if self.format:
            attrs.append(f"KEYFORMAT={quote(self.format)}")
        if self.format_versions is not None:
            versions = "/".join(str(v) for v in self.format_versions)
            attrs.append(f"KEYFORMATVERSIONS={quote(versions)}")
        return TAG_KEY + ":" + ",".join(attrs)


@dataclass
class Map:
    """The EXT-X-MAP tag: where to find a media initialisation section."""

    uri: str = ""
    byte_range: ByteRange = ByteRange()

    def __str__(self) -> str:
        if tuple(self.byte_range) != (0, 0):
            return f"{TAG_MAP}:URI={quote(self.uri)},BYTERANGE={ByteRange(*self.byte_range)}"
        return f"{TAG_MAP}:URI={quote(self.uri)}"


@dataclass
class DateRange:
    """The EXT-X-DATERANGE tag.

    The cue fields hold encoded SCTE-35 splice info sections.
    """

    id: str = ""
    class_name: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    duration: timedelta = timedelta(0)
    planned: timedelta = timedelta(0)
    # Values are strings, floats or hexadecimal sequences.
    custom: Dict[str, Any] = field(default_factory=dict)
    cue_command: Optional[bytes] = None
    # First of the out/in cue pair.
    cue_out: Optional[bytes] = None
    # Second of the out/in cue pair.
    cue_in: Optional[bytes] = None
    end_on_next: bool = False


@dataclass
class Segment:
    uri: str = ""
    # Duration from the #EXTINF tag.
    duration: timedelta = timedelta(0)
    # Sub-range of the resource at uri, from #EXT-X-BYTERANGE.
    range: ByteRange = ByteRange()
    # The preceding and following segments are discontinuous.
    discontinuity: bool = False
    # How to decrypt the segment; None if it is not encrypted.
    key: Optional[Key] = None
    map: Optional[Map] = None
    date_time: Optional[datetime] = None
    date_range: Optional[DateRange] = None


@dataclass
class StartPoint:
    offset: float = 0.0
    precise: bool = False


@dataclass
class CCInfo:
    """A closed-caption channel (CC1-CC4) or service block (SERVICE1-63)."""

    id: int = 0
    service: bool = False

    def __str__(self) -> str:
        prefix = "SERVICE" if self.service else "CC"
        return f"{prefix}{self.id}"


@dataclass
class Rendition:
    """A rendition described by an EXT-X-MEDIA tag (RFC 8216 section 4.3.4.1)."""

    type: MediaType = MediaType.AUDIO
    uri: str = ""
    # The GROUP-ID attribute.
    group: str = ""
    language: str = ""
    assoc_language: str = ""
    name: str = ""
    default: bool = False
    auto_select: bool = False
    forced: bool = False
    instream_id: Optional[CCInfo] = None
    characteristics: List[str] = field(default_factory=list)
    channels: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        attrs = [f"NAME={quote(self.name)}", f"TYPE={MediaType(self.type)}"]
        if self.uri:
            attrs.append(f"URI={quote(self.uri)}")
        attrs.append(f"GROUP-ID={quote(self.group)}")
        if self.language:
            attrs.append(f"LANGUAGE={quote(self.language)}")
        if self.assoc_language:
            attrs.append(f"ASSOC-LANGUAGE={quote(self.assoc_language)}")
        if self.default:
            attrs.append("DEFAULT=YES")
        if self.auto_select:
            attrs.append("AUTOSELECT=YES")
        if self.forced:
            attrs.append("FORCED=YES")
        if self.type == MediaType.CLOSED_CAPTIONS and self.instream_id is not None:
            attrs.append(f"INSTREAM-ID={quote(str(self.instream_id))}")
        if self.characteristics:
            attrs.append(f"CHARACTERISTICS={quote(','.join(self.characteristics))}")
        if self.channels:
            attrs.append(f"CHANNELS={quote('/'.join(self.channels))}")
        return TAG_RENDITION + ":" + ",".join(attrs)


@dataclass
class Variant:
    """The EXT-X-STREAM-INF tag (RFC 8216 section 4.3.4.2) and its URI."""

    uri: str = ""
    # Peak segment bitrate in bits per second; required.
    bandwidth: int = 0
    average_bandwidth: int = 0
    # For example ["mp4a.40.2", "avc1.64001f"].
    codecs: List[str] = field(default_factory=list)
    # Width and height in pixels.
    resolution: Tuple[int, int] = (0, 0)
    # Maximum frame rate; written rounded to 3 decimal places.
    frame_rate: float = 0.0
    hdcp: HDCPLevel = HDCPLevel.NONE
    # Group names of matching renditions; empty if there is none.
    audio: str = ""
    video: str = ""
    subtitles: str = ""
    closed_captions: str = ""

    def __str__(self) -> str:
        attrs = [f"BANDWIDTH={self.bandwidth}"]
        if self.average_bandwidth > 0:
            attrs.append(f"AVERAGE-BANDWIDTH={self.average_bandwidth}")
        if self.codecs:
            attrs.append(f"CODECS={quote(','.join(self.codecs))}")
        if tuple(self.resolution) != (0, 0):
            attrs.append(f"RESOLUTION={self.resolution[0]}x{self.resolution[1]}")
        if self.frame_rate > 0:
            attrs.append(f"FRAME-RATE={self.frame_rate:.3f}")
        if self.hdcp != HDCPLevel.NONE:
            attrs.append(f"HDCP-LEVEL={HDCPLevel(self.hdcp)}")
        if self.audio:
            attrs.append(f"AUDIO={quote(self.audio)}")
        if self.video:
            attrs.append(f"VIDEO={quote(self.video)}")
        if self.subtitles:
            attrs.append(f"SUBTITLES={quote(self.subtitles)}")
        if self.closed_captions and self.closed_captions != NO_CLOSED_CAPTIONS:
            attrs.append(f"CLOSED-CAPTIONS={quote(self.closed_captions)}")
        return f"{TAG_VARIANT}:{','.join(attrs)}\n{self.uri}"


# The EXT-X-I-FRAME-STREAM-INF tag has the same structure as a Variant.
IFrameInfo = Variant


@dataclass
class SessionData:
    """The EXT-X-SESSION-DATA tag."""

    id: str = ""
    # Exactly one of value or uri should be set.
    value: str = ""
    uri: str = ""
    language: str = ""

    def __str__(self) -> str:
        attrs = [f"DATA-ID={quote(self.id)}"]
        if self.value:
            attrs.append(f"VALUE={quote(self.value)}")
        if self.uri:
            attrs.append(f"URI={quote(self.uri)}")
        if self.language:
            attrs.append(f"LANGUAGE={quote(self.language)}")
        return TAG_SESSION_DATA + ":" + ",".join(attrs)


@dataclass
class Playlist:
    version: int = 0
    segments: List[Segment] = field(default_factory=list)
    independent_segments: bool = False
    start: Optional[StartPoint] = None

    # Media playlist, RFC 8216 section 4.4.3.
    target_duration: timedelta = timedelta(0)
    sequence: int = 0
    discontinuity_sequence: int = 0
    end: bool = False
    type: PlaylistType = PlaylistType.NONE
    i_frames_only: bool = False

    # Master playlist.
    media: List[Rendition] = field(default_factory=list)
    variants: List[Variant] = field(default_factory=list)
    session_data: List[SessionData] = field(default_factory=list)
    session_key: Optional[Key] = None