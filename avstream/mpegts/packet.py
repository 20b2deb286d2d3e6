"""MPEG transport stream packets as specified in ITU-T H.222.0."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .pes import PESPacket

PACKET_SIZE = 188
"""Length of a MPEG-TS packet in bytes."""

SYNC = 0x47
"""First byte of every MPEG-TS packet (ASCII 'G')."""


class Scramble(IntEnum):
    """Algorithm, if any, used to encrypt a packet's payload."""

    NONE = 0x00
    EVEN = 0x80
    ODD = 0xC0


class PacketID(IntEnum):
    """Well-known packet identifiers."""

    PAT = 0  # Program association table
    CAT = 1  # Conditional access table
    TSDT = 2  # Transport stream description table
    IPMP = 3
    NULL = 8191  # max 13-bit integer


_PID_NAMES = {
    PacketID.PAT: "PAT",
    PacketID.CAT: "CAT",
    PacketID.TSDT: "TSDT",
    PacketID.IPMP: "IPMP",
    PacketID.NULL: "null",
}


def packet_id_name(pid: int) -> str:
    """Return a short human-readable name for the packet identifier pid."""
    return _PID_NAMES.get(pid, str(int(pid)))


@dataclass(frozen=True)
class PCR:
    """A Program Clock Reference.

    base is a 33-bit count of 90KHz ticks; extension is a 9-bit count of
    27MHz ticks added to base.
    """

    base: int = 0
    extension: int = 0

    def ticks(self) -> int:
        """Return the number of ticks of a 27MHz clock."""
        return self.base * 300 + self.extension


@dataclass
class Adaptation:
    """An adaptation field including its header."""

    # A discontinuity exists between this packet and the continuity
    # counter or PCR.
    discontinuous: bool = False
    # The packet may be used as a random access point.
    random_access: bool = False
    priority: bool = False
    splice_countdown_set: bool = False
    pcr: Optional[PCR] = None
    # Original program clock reference.
    opcr: Optional[PCR] = None
    # Packets remaining until a splicing point.
    splice_countdown: int = 0
    # Application-specific data.
    private: Optional[bytes] = None
    # Raw bytes of the adaptation extension field.
    extension: Optional[bytes] = None
    # Bytes of 0xff padding the packet to PACKET_SIZE.
    stuffing: Optional[bytes] = None


@dataclass
class Packet:
    """A single transport stream packet."""

    # The packet should be discarded.
    error: bool = False
    # The payload holds the first byte of a PES packet or section.
    payload_start: bool = False
    # Higher priority than other packets with the same PID.
    priority: bool = False
    pid: int = PacketID.PAT
    scrambling: Scramble = Scramble.NONE
    continuity: int = 0
    adaptation: Optional[Adaptation] = None
    pes: Optional[PESPacket] = None
    # Raw payload bytes that are not decoded further.
    payload: Optional[bytes] = None
    # An adaptation field of length zero is present.
    empty_adaptation: bool = False