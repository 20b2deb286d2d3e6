"""Stepping through the packets of a transport stream."""

from __future__ import annotations

from typing import BinaryIO, Iterator

from .codec import PacketError, unmarshal
from .packet import PACKET_SIZE, Packet


class Scanner:
    """Iterates over the packets read from a binary stream.

    Iteration stops cleanly at the end of the stream; a truncated final
    packet or an undecodable packet raises PacketError.
    """

    def __init__(self, rd: BinaryIO) -> None:
        self._rd = rd

    def _read_packet(self) -> bytes:
        chunks = []
        remaining = PACKET_SIZE
        while remaining > 0:
            chunk = self._rd.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def __iter__(self) -> Iterator[Packet]:
        while True:
            buf = self._read_packet()
            if not buf:
                return
            if len(buf) < PACKET_SIZE:
                raise PacketError(f"short read: read {len(buf)} bytes")
            try:
                packet = unmarshal(buf)
            except PacketError as err:
                raise PacketError(f"unmarshal: {err}") from err
            yield packet