"""Packetised elementary stream (PES) packets carried in MPEG-TS payloads."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

# Flags indicating which optional fields are present in a PES header.
FIELD_PTS = 0x80
FIELD_DTS = 0x40
FIELD_ESCR = 0x20
FIELD_ES_RATE = 0x10
FIELD_TRICK_MODE = 0x08
FIELD_COPY_INFO = 0x04
FIELD_CRC = 0x02
FIELD_EXTENSION = 0x01

MAX_TICKS = 0x1FFFFFFFF
"""Largest 33-bit integer a timestamp can hold."""

_PREFIX = b"\x00\x00\x01"
# flags + fields + header length
_HEADER_LENGTH = 3
_PACKED_TIMESTAMP = 5


class PESError(ValueError):
    """Raised when a PES packet cannot be decoded or encoded."""


@dataclass
class Timestamp:
    """A presentation or decode timestamp from a PES header."""

    # The carrying packet contains a presentation timestamp.
    pts: bool = False
    # The carrying packet contains a decode timestamp.
    dts: bool = False
    # 33-bit count of 90KHz clock ticks.
    ticks: int = 0


@dataclass
class PESHeader:
    """The optional header of a PES packet."""

    # Zero means the stream is not scrambled.
    scrambling: int = 0
    priority: bool = False
    # The header is immediately followed by a start code or syncword.
    alignment: bool = False
    copyrighted: bool = False
    original: bool = False
    # Which optional fields are present; see the FIELD_* flags.
    fields: int = 0
    presentation: Optional[Timestamp] = None
    decode: Optional[Timestamp] = None
    # Undecoded optional field bytes, including any stuffing.
    optional: Optional[bytes] = None

    def packed_length(self) -> int:
        """Return the number of bytes the header occupies when encoded."""
        n = _HEADER_LENGTH
        if self.presentation is not None:
            n += _PACKED_TIMESTAMP
        if self.decode is not None:
            n += _PACKED_TIMESTAMP
        return n + len(self.optional or b"")


@dataclass
class PESPacket:
    """A PES packet."""

    # Identifies this elementary stream among others.
    id: int = 0
    # Number of bytes in the packet; zero means unbounded (video only).
    length: int = 0
    header: Optional[PESHeader] = None
    # Raw audio or video data.
    data: Optional[bytes] = None


def is_pes_payload(payload: bytes) -> bool:
    """Report whether payload starts with a PES packet."""
    return len(payload) >= 6 and bytes(payload[:3]) == _PREFIX


def decode_pes(buf: bytes) -> PESPacket:
    """Decode the PES packet at the start of buf."""
    if not is_pes_payload(buf):
        raise PESError("no PES packet")
    buf = bytes(buf)
    (length,) = struct.unpack(">H", buf[4:6])
    pes = PESPacket(id=buf[3], length=length)
    rest = buf[6:]
    if length >= 3:
        try:
            pes.header = decode_pes_header(rest)
        except PESError as err:
            raise PESError(f"decode header: {err}") from err
        rest = rest[pes.header.packed_length():]
    pes.data = rest
    return pes


def encode_pes_packet(p: PESPacket) -> bytes:
    """Return the wire encoding of p."""
    if not 0 <= p.length <= 0xFFFF:
        raise PESError(f"length {p.length} does not fit in 16 bits")
    out = bytearray(_PREFIX)
    out.append(p.id & 0xFF)
    out += struct.pack(">H", p.length)
    if p.header is not None:
        try:
            out += encode_pes_header(p.header)
        except PESError as err:
            raise PESError(f"encode PES header: {err}") from err
    if p.data is not None:
        out += p.data
    return bytes(out)


def _read_timestamp(buf: bytes) -> Timestamp:
    if len(buf) < _PACKED_TIMESTAMP:
        raise PESError(f"short timestamp: have {len(buf)} bytes, need {_PACKED_TIMESTAMP}")
    try:
        return unpack_timestamp(buf[:_PACKED_TIMESTAMP])
    except PESError as err:
        raise PESError(f"read timestamp: {err}") from err


def decode_pes_header(buf: bytes) -> PESHeader:
    """Decode the optional PES header at the start of buf."""
    buf = bytes(buf)
    if len(buf) < 3:
        raise PESError(f"short buffer length {len(buf)}: need at least 3")
    flags = buf[0]
    if flags & 0xC0 == 0:
        raise PESError("decode header: bad marker bits")
    h = PESHeader(
        scrambling=flags & 0b00110000,
        priority=bool(flags & 0b00001000),
        alignment=bool(flags & 0b00000100),
        copyrighted=bool(flags & 0b00000010),
        original=bool(flags & 0b00000001),
        fields=buf[1],
    )
    hlength = buf[2]
    if len(buf) - 3 < hlength:
        raise PESError(f"short buffer: header reports {hlength}, have {len(buf) - 3}")
    body = buf[3 : 3 + hlength]

    has_pts = bool(h.fields & FIELD_PTS)
    has_dts = bool(h.fields & FIELD_DTS)
    if has_pts:
        h.presentation = _read_timestamp(body)
        body = body[_PACKED_TIMESTAMP:]
    if has_dts:
        if not has_pts:
            raise PESError("timestamp present but missing PTS")
        h.decode = _read_timestamp(body)
        body = body[_PACKED_TIMESTAMP:]
    h.optional = body
    return h


def encode_pes_header(h: PESHeader) -> bytes:
    """Return the wire encoding of h."""
    first = 0x80 | (h.scrambling & 0b00110000)  # marker bits
    if h.priority:
        first |= 1 << 3
    if h.alignment:
        first |= 1 << 2
    if h.copyrighted:
        first |= 1 << 1
    if h.original:
        first |= 1
    opt = bytearray()
    for ts in (h.presentation, h.decode):
        if ts is None:
            continue
        if ts.dts and not ts.pts:
            raise PESError("bad timestamp: DTS set without PTS")
        opt += pack_timestamp(ts)
    if h.optional is not None:
        opt += h.optional
    if len(opt) > 0xFF:
        raise PESError(f"header data length {len(opt)} longer than max 255")
    return bytes([first, h.fields & 0xFF, len(opt)]) + bytes(opt)


def unpack_timestamp(a: bytes) -> Timestamp:
    """Unpack a Timestamp from its 5-byte encoding.

    Bit layout, byte by byte (p and d are the PTS and DTS flags, t the
    33-bit big-endian tick count, 1 the marker bits):

        00pd ttt1, tttt tttt, tttt ttt1, tttt tttt, tttt ttt1
    """
    if len(a) != _PACKED_TIMESTAMP:
        raise PESError(f"need {_PACKED_TIMESTAMP} bytes, have {len(a)}")
    a0, a1, a2, a3, a4 = bytes(a)
    pts = bool(a0 & 0b00100000)
    dts = bool(a0 & 0b00010000)
    if dts and not pts:
        raise PESError("DTS set but no PTS set")
    if a0 & a2 & a4 & 0x01 == 0:
        raise PESError("corrupt timestamp")
    ticks = (
        ((a0 >> 1) & 0x07) << 30
        | a1 << 22
        | ((a2 >> 1) & 0x7F) << 15
        | a3 << 7
        | ((a4 >> 1) & 0x7F)
    )
    return Timestamp(pts=pts, dts=dts, ticks=ticks)


def pack_timestamp(t: Timestamp) -> bytes:
    """Return the 5-byte encoding of t, laid out as in unpack_timestamp."""
    ticks = t.ticks & MAX_TICKS
    a0 = ((ticks >> 30) & 0x07) << 1 | 1
    if t.pts:
        a0 |= 1 << 5
    if t.dts:
        a0 |= 1 << 4
    return bytes(
        [
            a0,
            (ticks >> 22) & 0xFF,
            ((ticks >> 15) & 0x7F) << 1 | 1,
            (ticks >> 7) & 0xFF,
            (ticks & 0x7F) << 1 | 1,
        ]
    )