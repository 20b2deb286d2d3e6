"""RTP payload headers for transporting JPEG XS streams (RFC 9134)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

CODESTREAM_START = 0xFF10
CODESTREAM_END = 0xFF11


class ScanMode(IntEnum):
    """How a frame is scanned, as held in the interlaced information bits."""

    PROGRESSIVE = 0b00000000
    RESERVED = 0b00001000
    INTERLACED_FIRST = 0b00010000
    INTERLACED_SECOND = 0b00011000


@dataclass
class Header:
    """The 4-byte RTP payload header of a JPEG XS packet."""

    # Packets are sent sequentially rather than possibly out of order.
    sequential: bool = False
    # True for codestream packetization, False for slice packetization.
    packet_mode: bool = False
    # Last packet of a packetization unit.
    last: bool = False
    interlaced_info: ScanMode = ScanMode.PROGRESSIVE
    # 5-bit frame counter (modulo 32).
    frame_count: int = 0
    # 11-bit slice and extended packet counter.
    sep_count: int = 0
    # 11-bit packet number within the packetization unit.
    packet_count: int = 0


def unmarshal_header(a: bytes) -> Header:
    """Decode a Header from its 4-byte encoding."""
    if len(a) != 4:
        raise ValueError(f"need 4 bytes, have {len(a)}")
    a0, a1, a2, a3 = bytes(a)
    return Header(
        sequential=bool(a0 & 0b10000000),
        packet_mode=bool(a0 & 0b01000000),
        last=bool(a0 & 0b00100000),
        interlaced_info=ScanMode(a0 & 0b00011000),
        frame_count=(a0 & 0b00000111) << 2 | (a1 & 0b11000000) >> 6,
        sep_count=((a1 & 0b00111000) >> 3) << 8
        | (a1 & 0b00000111) << 5
        | (a2 & 0b11111000) >> 3,
        packet_count=(a2 & 0b00000111) << 8 | a3,
    )


def marshal_header(hdr: Header) -> bytes:
    """Return the 4-byte encoding of hdr."""
    a0 = int(hdr.interlaced_info) & 0b00011000
    if hdr.sequential:
        a0 |= 1 << 7
    if hdr.packet_mode:
        a0 |= 1 << 6
    if hdr.last:
        a0 |= 1 << 5
    frame_count = hdr.frame_count & 0xFF
    a0 |= (frame_count & 0b00011100) >> 2

    sep = hdr.sep_count & 0xFFFF
    sep_hi, sep_lo = sep >> 8, sep & 0xFF
    a1 = (frame_count & 0b00000011) << 6
    a1 |= (sep_hi & 0b00000111) << 3
    a1 |= (sep_lo & 0b11100000) >> 5

    packets = hdr.packet_count & 0xFFFF
    a2 = (sep_lo & 0b00011111) << 3
    a2 |= (packets >> 8) & 0b00000111
    a3 = packets & 0xFF
    return bytes([a0, a1, a2, a3])