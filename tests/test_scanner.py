import io

import pytest

from avstream.mpegts.codec import PacketError, marshal
from avstream.mpegts.packet import PACKET_SIZE, PCR, Adaptation, Packet
from avstream.mpegts.scanner import Scanner


def make_stream():
    packets = [
        Packet(pid=100, continuity=0, adaptation=Adaptation(pcr=PCR(1000, 7),
               stuffing=b"\xff" * 176)),
        Packet(pid=100, continuity=1, payload=b"\x11" * 184),
        Packet(pid=100, continuity=2, adaptation=Adaptation(pcr=PCR(2000, 0)),
               payload=b"\x22" * 176),
    ]
    return b"".join(marshal(p) for p in packets)


def test_scan_and_reencode():
    data = make_stream()
    out = io.BytesIO()
    count = 0
    for packet in Scanner(io.BytesIO(data)):
        count += 1
        out.write(marshal(packet))
    assert count == 3
    assert out.getvalue() == data


def test_pcr_ticks():
    ticks = [
        p.adaptation.pcr.ticks()
        for p in Scanner(io.BytesIO(make_stream()))
        if p.adaptation is not None and p.adaptation.pcr is not None
    ]
    assert ticks == [1000 * 300 + 7, 2000 * 300]


def test_empty_stream():
    assert list(Scanner(io.BytesIO(b""))) == []


def test_truncated_stream():
    data = make_stream()[: PACKET_SIZE + 10]
    it = iter(Scanner(io.BytesIO(data)))
    first = next(it)
    assert first.continuity == 0
    with pytest.raises(PacketError, match="short read"):
        next(it)


def test_bad_packet():
    with pytest.raises(PacketError, match="unmarshal"):
        list(Scanner(io.BytesIO(b"\x00" * PACKET_SIZE)))