"""Decoding and encoding of the pcap savefile packet capture format."""

from __future__ import annotations

import itertools
import struct
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, List, Tuple

_MAGIC_LITTLE_ENDIAN = 0xA1B2C3D4
_MAGIC_BIG_ENDIAN = 0xD4C3B2A1

VERSION = (2, 4)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_NATIVE_MAGIC = struct.Struct("=I")
_NATIVE_VERSION = struct.Struct("=HH")
_LE_VERSION = struct.Struct("<HH")
# Two leftover int32 fields, snap length, network.
_GLOBAL_HEADER = struct.Struct("<iiII")
# Seconds, sub-seconds, included length, original length.
_RECORD_HEADER = struct.Struct("<IIII")


class PcapError(ValueError):
    """Raised when a savefile cannot be decoded or encoded."""


@dataclass
class GlobalHeader:
    snap_len: int = 0
    network: int = 0


@dataclass
class Header:
    time: datetime = _EPOCH
    orig_len: int = 0


@dataclass
class Packet:
    header: Header = field(default_factory=Header)
    data: bytes = b""


@dataclass
class File:
    header: GlobalHeader = field(default_factory=GlobalHeader)
    packets: List[Packet] = field(default_factory=list)


def _read(rd: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = rd.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _read_exact(rd: BinaryIO, size: int, what: str) -> bytes:
    data = _read(rd, size)
    if len(data) < size:
        raise PcapError(f"{what}: unexpected end of file")
    return data


def decode(rd: BinaryIO) -> File:
    """Return the packet capture read from the binary stream rd."""
    (magic,) = _NATIVE_MAGIC.unpack(_read_exact(rd, 4, "read magic number"))
    if magic not in (_MAGIC_LITTLE_ENDIAN, _MAGIC_BIG_ENDIAN):
        raise PcapError(f"unknown magic number {magic:#x}")

    version = _LE_VERSION.unpack(_read_exact(rd, 4, "read pcap version"))
    if version != VERSION:
        raise PcapError(f"unsupported version {version[0]}.{version[1]}")

    raw = _read_exact(rd, _GLOBAL_HEADER.size, "read global header")
    _, _, snap_len, network = _GLOBAL_HEADER.unpack(raw)
    global_header = GlobalHeader(snap_len=snap_len, network=network)

    packets = []
    for index in itertools.count(1):
        raw = _read(rd, _RECORD_HEADER.size)
        if not raw:
            break
        if len(raw) < _RECORD_HEADER.size:
            raise PcapError(f"packet {index}: read header: unexpected end of file")
        seconds, microseconds, incl_len, orig_len = _RECORD_HEADER.unpack(raw)
        when = _EPOCH + timedelta(seconds=seconds, microseconds=microseconds)
        data = _read_exact(rd, incl_len, f"packet {index}: read data")
        packets.append(Packet(Header(time=when, orig_len=orig_len), data))

    return File(header=global_header, packets=packets)


def encode(w: BinaryIO, file: File) -> int:
    """Write file in savefile format to w and return the number of bytes written."""
    try:
        head = (
            _NATIVE_MAGIC.pack(_MAGIC_LITTLE_ENDIAN)
            + _NATIVE_VERSION.pack(*VERSION)
            + _GLOBAL_HEADER.pack(0, 0, file.header.snap_len, file.header.network)
        )
    except struct.error as err:
        raise PcapError(f"global header: {err}") from err
    w.write(head)
    written = len(head)

    for index, packet in enumerate(file.packets):
        seconds, nanoseconds = timestamp(packet.header.time)
        try:
            record = _RECORD_HEADER.pack(
                seconds, nanoseconds // 1000, len(packet.data), packet.header.orig_len
            )
        except struct.error as err:
            raise PcapError(f"packet {index}: header: {err}") from err
        chunk = record + bytes(packet.data)
        w.write(chunk)
        written += len(chunk)
    return written


def timestamp(t: datetime) -> Tuple[int, int]:
    """Return the Unix seconds (as an unsigned 32-bit value) and nanoseconds of t.

    A naive datetime is taken to be in UTC.
    """
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    delta = t - _EPOCH
    seconds = delta.days * 86400 + delta.seconds
    return seconds & 0xFFFFFFFF, delta.microseconds * 1000