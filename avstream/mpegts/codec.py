"""Encoding and decoding of whole MPEG-TS packets."""

from __future__ import annotations

from typing import BinaryIO, Optional, Tuple, Union

from .packet import PACKET_SIZE, PCR, SYNC, Adaptation, Packet, PacketID, Scramble
from .pes import PESError, decode_pes, encode_pes_packet, is_pes_payload

_BASE_MAX = (1 << 33) - 1  # max 33-bit integer
_EXTENSION_MAX = (1 << 9) - 1  # max 9-bit integer
_ADAPTATION_MAX = 255
_PCR_SIZE = 6


class PacketError(ValueError):
    """Raised when a transport stream packet cannot be decoded or encoded."""


class LongPacketError(PacketError):
    """Raised when an encoded packet would be longer than PACKET_SIZE."""


class ShortPacketError(PacketError):
    """Raised when an encoded packet would be shorter than PACKET_SIZE."""


def _packet_id(value: int) -> Union[PacketID, int]:
    try:
        return PacketID(value)
    except ValueError:
        return value


def _scramble(value: int) -> Union[Scramble, int]:
    try:
        return Scramble(value)
    except ValueError:
        return value


def _take(buf: bytes, n: int, what: str) -> Tuple[bytes, bytes]:
    if len(buf) < n:
        raise PacketError(f"{what}: need {n} bytes, have {len(buf)}")
    return buf[:n], buf[n:]


def _parse_adaptation(body: bytes) -> Optional[Adaptation]:
    """Parse an adaptation field body (everything after its length byte)."""
    if not body:
        return None
    flags = body[0]
    rest = body[1:]
    af = Adaptation(
        discontinuous=bool(flags & 0x80),
        random_access=bool(flags & 0x40),
        priority=bool(flags & 0x20),
    )
    if flags & 0x10:
        raw, rest = _take(rest, _PCR_SIZE, "PCR")
        af.pcr = parse_pcr(raw)
    if flags & 0x08:
        raw, rest = _take(rest, _PCR_SIZE, "OPCR")
        af.opcr = parse_pcr(raw)
    if flags & 0x04:
        raw, rest = _take(rest, 1, "splice countdown")
        af.splice_countdown_set = True
        af.splice_countdown = raw[0]
    if flags & 0x02:
        raw, rest = _take(rest, 1, "private data length")
        af.private, rest = _take(rest, raw[0], "private data")
    if flags & 0x01:
        raw, _ = _take(rest, 1, "adaptation extension length")
        af.extension, rest = _take(rest, 1 + raw[0], "adaptation extension")
    if rest:
        af.stuffing = rest
    return af


def unmarshal(buf: bytes) -> Packet:
    """Decode a packet from exactly PACKET_SIZE bytes."""
    buf = bytes(buf)
    if len(buf) != PACKET_SIZE:
        raise PacketError(f"need exactly {PACKET_SIZE} bytes, have {len(buf)}")
    if buf[0] != SYNC:
        raise PacketError(f"expected sync byte, got {buf[0]:x}")
    p = Packet(
        error=bool(buf[1] & 0x80),
        payload_start=bool(buf[1] & 0x40),
        priority=bool(buf[1] & 0x20),
        pid=_packet_id((buf[1] & 0x1F) << 8 | buf[2]),
        scrambling=_scramble(buf[3] & 0xC0),
        continuity=buf[3] & 0x0F,
    )
    control = buf[3] >> 4
    if control == 0x01:
        rest = buf[4:]
    elif control in (0x02, 0x03):
        alen = buf[4]
        end = 5 + alen
        if end > PACKET_SIZE:
            raise PacketError(f"adaptation field length {alen} exceeds packet size")
        p.adaptation = _parse_adaptation(buf[5:end])
        p.empty_adaptation = p.adaptation is None
        rest = buf[end:]
    else:
        raise PacketError("neither adaptation field or payload present")

    if not control & 0x01 and not rest:
        return p
    if p.payload_start and is_pes_payload(rest):
        try:
            p.pes = decode_pes(rest)
        except PESError as err:
            raise PacketError(f"unmarshal payload: decode PES packet: {err}") from err
    else:
        p.payload = rest
    return p


def _read_full(r: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = r.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def decode(r: BinaryIO) -> Packet:
    """Read and decode the next packet from the binary stream r."""
    buf = _read_full(r, PACKET_SIZE)
    if len(buf) != PACKET_SIZE:
        raise PacketError(f"short read ({len(buf)} bytes)")
    try:
        return unmarshal(buf)
    except PacketError as err:
        raise PacketError(f"unmarshal packet: {err}") from err


def _marshal_adaptation(af: Adaptation) -> bytes:
    flags = 0
    body = bytearray()
    if af.discontinuous:
        flags |= 0x80
    if af.random_access:
        flags |= 0x40
    if af.priority:
        flags |= 0x20
    if af.pcr is not None:
        flags |= 0x10
        try:
            body += put_pcr(af.pcr)
        except PacketError as err:
            raise PacketError(f"pack PCR: {err}") from err
    if af.opcr is not None:
        flags |= 0x08
        try:
            body += put_pcr(af.opcr)
        except PacketError as err:
            raise PacketError(f"pack OPCR: {err}") from err
    if af.splice_countdown_set:
        flags |= 0x04
        body.append(af.splice_countdown & 0xFF)
    if af.private is not None:
        flags |= 0x02
        if len(af.private) > _ADAPTATION_MAX:
            raise PacketError(
                f"private data length {len(af.private)} longer than max {_ADAPTATION_MAX}"
            )
        body.append(len(af.private))
        body += af.private
    if af.extension is not None:
        flags |= 0x01
        body += af.extension
    if af.stuffing is not None:
        body += af.stuffing
    alen = 1 + len(body)  # flags + body
    if alen > _ADAPTATION_MAX:
        raise PacketError(
            f"adaptation field too long: have {alen} bytes, max {_ADAPTATION_MAX}"
        )
    return bytes([alen, flags]) + bytes(body)


def marshal(p: Packet) -> bytes:
    """Return the PACKET_SIZE-byte wire encoding of p."""
    pid = int(p.pid)
    if pid > PacketID.NULL or pid < 0:
        raise PacketError(f"packet id {pid} greater than max {int(PacketID.NULL)}")
    if not 0 <= p.continuity <= 15:
        raise PacketError(f"continuity {p.continuity} larger than max 4-bit integer 15")

    b1 = (pid >> 8) & 0x1F
    if p.error:
        b1 |= 0x80
    if p.payload_start:
        b1 |= 0x40
    if p.priority:
        b1 |= 0x20
    b3 = (int(p.scrambling) & 0xC0) | p.continuity
    if p.adaptation is not None or p.empty_adaptation:
        b3 |= 0x20
    if p.payload is not None or p.pes is not None:
        b3 |= 0x10

    out = bytearray([SYNC, b1, pid & 0xFF, b3])
    if p.adaptation is not None:
        out += _marshal_adaptation(p.adaptation)
    elif p.empty_adaptation:
        # An adaptation field of length zero.
        out.append(0)
    if p.pes is not None:
        try:
            out += encode_pes_packet(p.pes)
        except PESError as err:
            raise PacketError(f"encode PES packet: {err}") from err
    if p.payload is not None:
        out += p.payload

    if len(out) > PACKET_SIZE:
        raise LongPacketError(f"long packet: {len(out)} bytes")
    if len(out) < PACKET_SIZE:
        raise ShortPacketError(f"short packet: {len(out)} bytes")
    return bytes(out)


def encode(w: BinaryIO, p: Packet) -> None:
    """Write the wire encoding of p to the binary stream w."""
    w.write(marshal(p))


def parse_pcr(a: bytes) -> PCR:
    """Decode a PCR from its 6-byte encoding.

    The 33-bit base (b), 6 reserved bits (r) and 9-bit extension (e)
    are laid out as bbbb...b rrrrrr eeeeeeeee across 48 bits.
    """
    if len(a) != _PCR_SIZE:
        raise PacketError(f"need {_PCR_SIZE} bytes, got {len(a)}")
    value = int.from_bytes(bytes(a), "big")
    return PCR(base=value >> 15, extension=value & _EXTENSION_MAX)


def put_pcr(pcr: PCR) -> bytes:
    """Return the 6-byte encoding of pcr, with the reserved bits set."""
    if pcr.base > _BASE_MAX or pcr.base < 0:
        raise PacketError(f"base {pcr.base} larger than max {_BASE_MAX}")
    if pcr.extension > _EXTENSION_MAX or pcr.extension < 0:
        raise PacketError(f"extension {pcr.extension} larger than max {_EXTENSION_MAX}")
    value = pcr.base << 15 | 0x3F << 9 | pcr.extension
    return value.to_bytes(_PCR_SIZE, "big")