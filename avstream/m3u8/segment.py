"""Reading and writing media segments of m3u8 playlists."""

from __future__ import annotations

import re
import struct
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, TextIO

from .lexer import Item, ItemType
from .model import (
    TAG_BYTE_RANGE,
    TAG_DATE_RANGE,
    TAG_DATE_TIME,
    TAG_DISCONTINUITY,
    TAG_KEY,
    TAG_SEGMENT_DURATION,
    ByteRange,
    DateRange,
    Segment,
    quote,
)

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_MICROSECOND = timedelta(microseconds=1)


class M3U8Error(ValueError):
    """Raised when a playlist cannot be parsed or written."""


def _atoi(s: str) -> int:
    if not _INT_RE.fullmatch(s):
        raise M3U8Error(f"invalid integer {s!r}")
    return int(s)


def _float32(x: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", x))[0]
    except OverflowError as err:
        raise M3U8Error(f"value {x} out of range") from err


def _next_item(items: Iterator[Item]) -> Item:
    return next(items, Item(ItemType.EOF, ""))


def parse_segment_duration(item: Item) -> timedelta:
    """Parse the duration carried by the item following an #EXTINF tag."""
    if item.type not in (ItemType.ATTR_NAME, ItemType.NUMBER):
        raise M3U8Error(f"got {item}: want attribute name or number")
    value = item.value
    if "." not in value:
        return timedelta(seconds=_atoi(value))
    before, _, after = value.partition(".")
    if all(c == "0" for c in after):
        return timedelta(seconds=_atoi(before))
    if not _FLOAT_RE.fullmatch(value):
        raise M3U8Error(f"invalid number {value!r}")
    seconds = _float32(float(value))
    return timedelta(microseconds=int(seconds * 1e6))


def parse_byte_range(s: str) -> ByteRange:
    """Parse a byte range written as "length" or "length@offset"."""
    length, sep, offset = s.partition("@")
    if not sep:
        return ByteRange(_atoi(length), 0)
    return ByteRange(_atoi(length), _atoi(offset))


def parse_segment(items: Iterable[Item], leading: Item) -> Segment:
    """Return the segment read from items, given the item that started it."""
    items = iter(items)
    seg = Segment()
    if leading.type == ItemType.TAG and leading.value == TAG_SEGMENT_DURATION:
        try:
            seg.duration = parse_segment_duration(_next_item(items))
        except M3U8Error as err:
            raise M3U8Error(f"parse segment duration: {err}") from err
    for it in items:
        if it.type == ItemType.ERROR:
            raise M3U8Error(it.value)
        if it.type == ItemType.URL:
            seg.uri = it.value
            return seg
        if it.type != ItemType.TAG:
            continue
        if it.value == TAG_SEGMENT_DURATION:
            try:
                seg.duration = parse_segment_duration(_next_item(items))
            except M3U8Error as err:
                raise M3U8Error(f"parse segment duration: {err}") from err
        elif it.value == TAG_BYTE_RANGE:
            value = _next_item(items)
            if value.type != ItemType.STRING:
                raise M3U8Error(f"parse byte range: got {value}, want item type string")
            try:
                seg.range = parse_byte_range(value.value)
            except M3U8Error as err:
                raise M3U8Error(f"parse byte range: {err}") from err
        elif it.value == TAG_DISCONTINUITY:
            seg.discontinuity = True
        else:
            raise M3U8Error(f"parsing {it} unsupported")
    raise M3U8Error("no url")


def _utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _zone(dt: datetime) -> str:
    offset = dt.utcoffset()
    if not offset:
        return "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "-" if minutes < 0 else "+"
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{mins:02d}"


def _format_time(dt: datetime, millis: bool) -> str:
    dt = _utc(dt)
    text = (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
        f"T{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}"
    )
    if millis:
        ms = dt.microsecond // 1000
        if ms:
            text += f".{ms:03d}".rstrip("0")
    return text + _zone(dt)


def date_range_text(dr: DateRange) -> str:
    """Return the #EXT-X-DATERANGE tag describing dr."""
    if not dr.id:
        raise M3U8Error("empty ID")
    if dr.start is None:
        raise M3U8Error("zero start time")
    attrs = [
        f"ID={quote(dr.id)}",
        f"START-DATE={quote(_format_time(dr.start, millis=False))}",
    ]
    if dr.end is not None:
        attrs.append(f"END-DATE={quote(_format_time(dr.end, millis=False))}")
    if dr.class_name:
        attrs.append(f"CLASS={quote(dr.class_name)}")
    if dr.cue_in is not None:
        attrs.append(f"SCTE35-IN=0x{bytes(dr.cue_in).hex()}")
    if dr.cue_out is not None:
        attrs.append(f"SCTE35-OUT=0x{bytes(dr.cue_out).hex()}")
    if dr.end_on_next:
        if not dr.class_name:
            raise M3U8Error("empty class with end-on-next set")
        if dr.end is not None:
            raise M3U8Error("non-zero end time with end-on-next set")
        if dr.duration > timedelta(0):
            raise M3U8Error(f"non-zero duration {dr.duration} with end-on-next set")
        attrs.append("END-ON-NEXT:YES")
    return TAG_DATE_RANGE + ":" + ",".join(attrs)


def write_date_range(w: TextIO, dr: DateRange) -> int:
    """Write the #EXT-X-DATERANGE tag for dr to w; return the characters written."""
    line = date_range_text(dr) + "\n"
    w.write(line)
    return len(line)


def marshal_segment(seg: Segment) -> str:
    """Return the tags and URI describing seg, separated by newlines."""
    if not seg.uri:
        raise M3U8Error("empty URI")
    if seg.duration == timedelta(0):
        raise M3U8Error("zero duration")
    tags = []
    if seg.discontinuity:
        tags.append(TAG_DISCONTINUITY)
    if seg.date_range is not None:
        try:
            tags.append(date_range_text(seg.date_range))
        except M3U8Error as err:
            raise M3U8Error(f"write date range: {err}") from err
    byte_range = ByteRange(*seg.range)
    if tuple(byte_range) != (0, 0):
        if byte_range.length >= byte_range.offset:
            raise M3U8Error(
                f"impossible range: offset ({byte_range.length}) must be smaller "
                f"than next {byte_range.offset}"
            )
        tags.append(f"{TAG_BYTE_RANGE}:{byte_range}")
    if seg.key is not None:
        tags.append(str(seg.key))
    if seg.map is not None:
        tags.append(str(seg.map))
    if seg.date_time is not None:
        tags.append(f"{TAG_DATE_TIME}:{_format_time(seg.date_time, millis=True)}")
    us = seg.duration // _MICROSECOND
    seconds = _float32(_float32(float(us)) / 1e6)
    tags.append(f"{TAG_SEGMENT_DURATION}:{seconds:.3f}")
    tags.append(seg.uri)
    return "\n".join(tags)


def write_segments(w: TextIO, segments: Iterable[Segment]) -> int:
    """Write each segment to w; return the number of characters written."""
    n = 0
    for i, seg in enumerate(segments):
        try:
            text = marshal_segment(seg)
        except M3U8Error as err:
            raise M3U8Error(f"segment {i}: {err}") from err
        w.write(text + "\n")
        n += len(text) + 1
    return n


__all__ = [
    "M3U8Error",
    "TAG_KEY",
    "date_range_text",
    "marshal_segment",
    "parse_byte_range",
    "parse_segment",
    "parse_segment_duration",
    "write_date_range",
    "write_segments",
]