"""Writing m3u8 playlists."""

from __future__ import annotations

from datetime import timedelta
from typing import TextIO

from .model import (
    TAG_END_LIST,
    TAG_INDEPENDENT_SEGMENTS,
    TAG_MEDIA_SEQUENCE,
    TAG_PLAYLIST_TYPE,
    TAG_TARGET_DURATION,
    TAG_VERSION,
    Map,
    MediaType,
    Playlist,
    PlaylistType,
    SessionData,
    Variant,
)
from .segment import M3U8Error, write_segments


def _write(w: TextIO, line: str) -> int:
    w.write(line + "\n")
    return len(line) + 1


def write_variant(w: TextIO, v: Variant) -> int:
    """Write the EXT-X-STREAM-INF tag and URI of v; return the characters written."""
    if v.bandwidth <= 0:
        raise M3U8Error(f"invalid bandwidth {v.bandwidth}: must be larger than zero")
    if not v.uri:
        raise M3U8Error("empty URI")
    return _write(w, str(v))


def write_session_data(w: TextIO, sd: SessionData) -> int:
    """Write the EXT-X-SESSION-DATA tag of sd; return the characters written."""
    if not sd.id:
        raise M3U8Error("ID not set")
    if sd.uri and sd.value:
        raise M3U8Error("only one of Value or URI may be set")
    return _write(w, str(sd))


def write_map(w: TextIO, m: Map) -> int:
    """Write the EXT-X-MAP tag of m; return the characters written."""
    return _write(w, str(m))


def encode(w: TextIO, p: Playlist) -> None:
    """Write the playlist p to the text stream w."""
    _write(w, "#EXTM3U")
    if p.version > 0:
        _write(w, f"{TAG_VERSION}:{p.version}")
    if p.type != PlaylistType.NONE:
        _write(w, f"{TAG_PLAYLIST_TYPE}:{PlaylistType(p.type)}")
    if p.independent_segments:
        _write(w, TAG_INDEPENDENT_SEGMENTS)
    if p.target_duration > timedelta(0):
        _write(w, f"{TAG_TARGET_DURATION}:{p.target_duration // timedelta(seconds=1)}")
    _write(w, f"{TAG_MEDIA_SEQUENCE}:{p.sequence}")

    try:
        write_segments(w, p.segments)
    except M3U8Error as err:
        raise M3U8Error(f"write segments: {err}") from err

    for r in p.media:
        if not r.name:
            raise M3U8Error("empty name")
        rname = f"rendition {r.name}"
        if not 0 <= int(r.type) <= MediaType.CLOSED_CAPTIONS:
            raise M3U8Error(f"{rname}: unknown type {int(r.type)}")
        if not r.group:
            raise M3U8Error(f"{rname}: empty group")
        is_cc = r.type == MediaType.CLOSED_CAPTIONS
        if not is_cc and r.instream_id is not None:
            raise M3U8Error(f"{rname}: instream-id set but type is {MediaType(r.type)}")
        if is_cc and r.instream_id is None:
            raise M3U8Error(f"{rname}: nil instream-id")
        _write(w, str(r))

    for i, v in enumerate(p.variants):
        try:
            write_variant(w, v)
        except M3U8Error as err:
            raise M3U8Error(f"write variant {i}: {err}") from err

    for i, sd in enumerate(p.session_data):
        try:
            write_session_data(w, sd)
        except M3U8Error as err:
            raise M3U8Error(f"write session data {i}: {err}") from err

    if p.end:
        _write(w, TAG_END_LIST)