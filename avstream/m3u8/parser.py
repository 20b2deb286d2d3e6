"""Reading m3u8 playlists."""

from __future__ import annotations

import re
import struct
from datetime import timedelta
from typing import IO, Iterable, Iterator, Tuple, Union

from .lexer import Item, ItemType, lex
from .model import (
    TAG_BYTE_RANGE,
    TAG_END_LIST,
    TAG_HEAD,
    TAG_INDEPENDENT_SEGMENTS,
    TAG_MEDIA_SEQUENCE,
    TAG_PLAYLIST_TYPE,
    TAG_RENDITION,
    TAG_SEGMENT_DURATION,
    TAG_TARGET_DURATION,
    TAG_VARIANT,
    TAG_VERSION,
    CCInfo,
    HDCPLevel,
    MediaType,
    Playlist,
    PlaylistType,
    Rendition,
    Variant,
)
from .segment import M3U8Error, parse_segment

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_SEQUENCE_RE = re.compile(r"\d+")


def _atoi(s: str) -> int:
    if not _INT_RE.fullmatch(s):
        raise M3U8Error(f"invalid integer {s!r}")
    return int(s)


def _float32(s: str) -> float:
    if not _FLOAT_RE.fullmatch(s):
        raise M3U8Error(f"invalid number {s!r}")
    try:
        return struct.unpack("<f", struct.pack("<f", float(s)))[0]
    except OverflowError as err:
        raise M3U8Error(f"value {s} out of range") from err


def _next(items: Iterator[Item]) -> Item:
    return next(items, Item(ItemType.EOF, ""))


def _unquote(s: str) -> str:
    return s.strip('"')


def decode(rd: Union[str, bytes, IO, Iterable]) -> Playlist:
    """Parse a playlist from rd: a string, a text or binary stream, or lines."""
    items = lex(rd)
    first = _next(items)
    if first.type == ItemType.ERROR:
        raise M3U8Error(first.value)
    if first.type != ItemType.TAG or first.value != TAG_HEAD:
        raise M3U8Error(f"expected head tag, got {first.value!r}")

    p = Playlist()
    for it in items:
        if it.type == ItemType.ERROR:
            raise M3U8Error(it.value)
        if it.type != ItemType.TAG:
            continue
        tag = it.value
        if tag == TAG_VERSION:
            value = _next(items)
            if p.version != 0:
                raise M3U8Error(f"parse {value}: playlist version already specified")
            try:
                p.version = _atoi(value.value)
            except M3U8Error as err:
                raise M3U8Error(f"parse playlist version: {err}") from err
        elif tag == TAG_INDEPENDENT_SEGMENTS:
            p.independent_segments = True
        elif tag == TAG_VARIANT:
            try:
                p.variants.append(parse_variant(items))
            except M3U8Error as err:
                raise M3U8Error(f"parse variant: {err}") from err
        elif tag == TAG_RENDITION:
            try:
                p.media.append(parse_rendition(items))
            except M3U8Error as err:
                raise M3U8Error(f"parse rendition: {err}") from err
        elif tag == TAG_PLAYLIST_TYPE:
            try:
                p.type = parse_playlist_type(_next(items))
            except M3U8Error as err:
                raise M3U8Error(f"parse playlist type: {err}") from err
        elif tag == TAG_TARGET_DURATION:
            try:
                p.target_duration = parse_target_duration(_next(items))
            except M3U8Error as err:
                raise M3U8Error(f"parse target duration: {err}") from err
        elif tag in (TAG_SEGMENT_DURATION, TAG_BYTE_RANGE):
            try:
                p.segments.append(parse_segment(items, it))
            except M3U8Error as err:
                raise M3U8Error(f"parse segment: {err}") from err
        elif tag == TAG_END_LIST:
            p.end = True
        elif tag == TAG_MEDIA_SEQUENCE:
            value = _next(items)
            match = None
            if value.type != ItemType.ERROR:
                match = _SEQUENCE_RE.match(value.value)
            if match is None:
                raise M3U8Error("parse media sequence: invalid sequence number")
            p.sequence = int(match.group())
    return p


def parse_variant(items: Iterable[Item]) -> Variant:
    """Parse the attributes and URI following an EXT-X-STREAM-INF tag."""
    items = iter(items)
    v = Variant()
    for it in items:
        if it.type == ItemType.URL:
            v.uri = it.value
            return v
        if it.type != ItemType.ATTR_NAME:
            continue
        attr = it
        if _next(items).type != ItemType.EQUALS:
            raise M3U8Error(f"missing equals after {attr}")
        name = attr.value
        if name in ("PROGRAM-ID", "NAME"):
            # PROGRAM-ID was removed in version 6; NAME belongs to renditions.
            continue
        if name in ("BANDWIDTH", "AVERAGE-BANDWIDTH"):
            value = _next(items)
            if value.type != ItemType.NUMBER:
                raise M3U8Error(f"parse bandwidth attribute: unexpected {value}")
            try:
                n = _atoi(value.value)
            except M3U8Error as err:
                raise M3U8Error(f"parse bandwidth: {err}") from err
            if name == "BANDWIDTH":
                v.bandwidth = n
            else:
                v.average_bandwidth = n
        elif name == "CODECS":
            value = _next(items)
            if value.type != ItemType.STRING:
                raise M3U8Error(f"parse codecs attribute: unexpected {value}")
            v.codecs = _unquote(value.value).split(",")
        elif name == "RESOLUTION":
            value = _next(items)
            if value.type != ItemType.STRING:
                raise M3U8Error(f"parse resolution attribute: unexpected {value}")
            try:
                v.resolution = parse_resolution(value.value)
            except M3U8Error as err:
                raise M3U8Error(f"parse resolution: {err}") from err
        elif name == "FRAME-RATE":
            value = _next(items)
            if value.type != ItemType.NUMBER:
                raise M3U8Error(f"parse frame rate: unexpected {value}")
            try:
                v.frame_rate = _float32(value.value)
            except M3U8Error as err:
                raise M3U8Error(f"parse frame rate: {err}") from err
        elif name == "HDCP-LEVEL":
            value = _next(items)
            if value.type != ItemType.STRING:
                raise M3U8Error(f"parse HDCP level: unexpected {value}")
            try:
                v.hdcp = parse_hdcp_level(value.value)
            except M3U8Error as err:
                raise M3U8Error(f"parse HDCP level: {err}") from err
        elif name in ("AUDIO", "VIDEO", "SUBTITLES"):
            value = _next(items)
            if value.type != ItemType.STRING:
                raise M3U8Error(f"parse {name}: unexpected {value}")
            group = _unquote(value.value)
            if name == "AUDIO":
                v.audio = group
            elif name == "VIDEO":
                v.video = group
            else:
                v.subtitles = group
        elif name == "CLOSED-CAPTIONS":
            value = _next(items)
            if value.type != ItemType.STRING:
                raise M3U8Error(f"parse closed-captions: unexpected {value}")
            v.closed_captions = _unquote(value.value)
        else:
            raise M3U8Error(f"unknown attribute {name}")
    return v


def parse_resolution(s: str) -> Tuple[int, int]:
    """Parse a resolution such as "640x360" into (width, height)."""
    x, sep, y = s.partition("x")
    if not sep:
        raise M3U8Error("missing x separator")
    try:
        width = _atoi(x)
    except M3U8Error as err:
        raise M3U8Error(f"horizontal pixels: {err}") from err
    try:
        height = _atoi(y)
    except M3U8Error as err:
        raise M3U8Error(f"vertical pixels: {err}") from err
    return (width, height)


def parse_hdcp_level(s: str) -> HDCPLevel:
    """Parse an HDCP level: NONE, TYPE-0 or TYPE-1."""
    for level in HDCPLevel:
        if str(level) == s:
            return level
    raise M3U8Error(f"unknown HDCP level {s!r}")


def parse_media_type(s: str) -> MediaType:
    """Parse a media type such as AUDIO or CLOSED-CAPTIONS."""
    for t in MediaType:
        if str(t) == s:
            return t
    raise M3U8Error(f"unknown media type {s}")


def parse_bool(s: str) -> bool:
    """Parse an enumerated boolean: YES or NO."""
    if s == "YES":
        return True
    if s == "NO":
        return False
    raise M3U8Error(f"invalid boolean string {s}")


def parse_cc_info(s: str) -> CCInfo:
    """Parse an INSTREAM-ID value (RFC 8216 section 4.3.4.1): CC1-CC4 or SERVICE1-SERVICE63."""
    if len(s) < 3:
        raise M3U8Error("too short")
    if s.startswith("CC"):
        if len(s) == 3 and "1" <= s[2] <= "4":
            return CCInfo(id=int(s[2]), service=False)
        raise M3U8Error(f"invalid closed caption {s}")
    if len(s) < 8:
        raise M3U8Error(f"invalid keyword {s}")
    if not s.startswith("SERVICE"):
        raise M3U8Error(f"expected keyword 'SERVICE', got {s[:7]!r}")
    if len(s) > 9:
        raise M3U8Error("service too long")
    try:
        n = _atoi(s[7:])
    except M3U8Error as err:
        raise M3U8Error(f"parse service block number: {err}") from err
    if not 1 <= n <= 63:
        raise M3U8Error(f"invalid service block number {n}")
    return CCInfo(id=n, service=True)


def parse_rendition(items: Iterable[Item]) -> Rendition:
    """Parse the attributes following an EXT-X-MEDIA tag."""
    items = iter(items)
    rend = Rendition()
    for it in items:
        if it.type != ItemType.ATTR_NAME:
            raise M3U8Error(f"expected attribute name, got {it}")
        attr = it
        equals = _next(items)
        if equals.type != ItemType.EQUALS:
            raise M3U8Error(f"parse {attr}: expected =, got {equals}")
        value = _next(items)
        if value.type == ItemType.ERROR:
            raise M3U8Error(f"parse {attr}: {value.value}")
        name, text = attr.value, value.value
        if name == "TYPE":
            try:
                rend.type = parse_media_type(text)
            except M3U8Error as err:
                raise M3U8Error(f"parse media type: {err}") from err
        elif name == "URI":
            rend.uri = _unquote(text)
        elif name == "GROUP-ID":
            rend.group = _unquote(text)
        elif name == "LANGUAGE":
            rend.language = _unquote(text)
        elif name == "ASSOC-LANGUAGE":
            rend.assoc_language = _unquote(text)
        elif name == "NAME":
            rend.name = _unquote(text)
        elif name in ("DEFAULT", "AUTOSELECT", "FORCED"):
            try:
                b = parse_bool(text)
            except M3U8Error as err:
                raise M3U8Error(f"parse {attr}: {err}") from err
            if name == "DEFAULT":
                rend.default = b
            elif name == "AUTOSELECT":
                rend.auto_select = b
            else:
                rend.forced = b
        elif name == "INSTREAM-ID":
            try:
                rend.instream_id = parse_cc_info(_unquote(text))
            except M3U8Error as err:
                raise M3U8Error(f"parse instream-id: {err}") from err
        elif name == "CHARACTERISTICS":
            rend.characteristics = _unquote(text).split(",")
        elif name == "CHANNELS":
            rend.channels = _unquote(text).split("/")
        else:
            raise M3U8Error(f"unknown rendition attribute {name}")

        following = _next(items)
        if following.type == ItemType.ERROR:
            raise M3U8Error(f"next attribute: {following.value}")
        if following.type == ItemType.COMMA:
            continue
        if following.type == ItemType.NEWLINE:
            return rend
        raise M3U8Error(f"next attribute: expected comma or newline, got {following}")
    return rend


def parse_playlist_type(it: Item) -> PlaylistType:
    """Parse the value of an EXT-X-PLAYLIST-TYPE tag: EVENT or VOD."""
    if it.type != ItemType.ATTR_NAME:
        raise M3U8Error(f"got {it}, want item type {ItemType.STRING}")
    if it.value == "EVENT":
        return PlaylistType.EVENT
    if it.value == "VOD":
        return PlaylistType.VOD
    raise M3U8Error(f"illegal playlist type {it.value!r}")


def parse_target_duration(it: Item) -> timedelta:
    """Parse the whole seconds of an EXT-X-TARGETDURATION tag."""
    if it.type not in (ItemType.ATTR_NAME, ItemType.NUMBER):
        raise M3U8Error(f"got {it}: want attribute name or number")
    return timedelta(seconds=_atoi(it.value))