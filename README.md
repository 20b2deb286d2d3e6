# avstream

Readers and writers for the formats used in live and on-demand video
streaming. It is plain Python and needs nothing beyond the standard
library.

## Modules

- `avstream.m3u8.model`: the data types of HLS playlists (RFC 8216):
  `Playlist`, `Segment`, `Variant`, `Rendition`, `SessionData`, `Key`,
  `Map`, `DateRange` and others. Converting a tag type with `str()` gives
  its playlist text.
- `avstream.m3u8.parser`: `decode(rd)` reads a `Playlist` from a string,
  bytes, a text or binary stream, or an iterable of lines.
- `avstream.m3u8.writer`: `encode(w, playlist)` writes a `Playlist` to a
  text stream. `write_variant`, `write_session_data` and `write_map`
  write single tags.
- `avstream.m3u8.segment`: media segment parsing and
  `marshal_segment(seg)`, which returns a segment's tags and URI.
- `avstream.m3u8.lexer`: `lex(rd)` yields the lexical items of a playlist.
- `avstream.mpegts.codec`: `unmarshal(buf)` and `marshal(packet)` convert
  between 188-byte MPEG-TS packets and `Packet` objects; `decode(r)` and
  `encode(w, packet)` do the same on binary streams. Adaptation fields,
  program clock references (`parse_pcr`, `put_pcr`) and PES packets are
  decoded.
- `avstream.mpegts.scanner`: `Scanner(rd)` iterates over the packets of a
  binary stream.
- `avstream.mpegts.pes`: PES packets, headers and their timestamps.
- `avstream.mpegts.packet`: the `Packet`, `Adaptation` and `PCR` types.
- `avstream.cmcd`: Common Media Client Data (CTA-5004). `parse_info(s)`
  reads the value of a `CMCD` query parameter, `extract_info(header)`
  reads the CMCD request headers, and `Info.encode()` writes the data back.
- `avstream.pcap`: `decode(rd)` and `encode(w, file)` for the pcap
  savefile format.
- `avstream.sip`: SIP messages (RFC 3261): `parse_address`,
  `read_request`, `write_request`, `read_message` and `parse_response`.
- `avstream.jxs`: `marshal_header` and `unmarshal_header` for the 4-byte
  RTP payload header of JPEG XS (RFC 9134).
- `avstream.cair`: `Client(root, timeout)` fetches playlists and engine
  status from the Cinegy Air HTTP API; `parse_playlist`,
  `playlist_from_file`, `parse_status` and `parse_duration` work on the
  data it serves.

## Installation

```
pip install .
```

## Examples

Read the variants of a master playlist:

```python
import io
from avstream.m3u8.parser import decode

text = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=1280000,RESOLUTION=640x360
url_0/low.m3u8
"""
playlist = decode(io.StringIO(text))
for variant in playlist.variants:
    print(variant.uri, variant.resolution[1], variant.bandwidth)
```

Re-encode every packet of a transport stream:

```python
from avstream.mpegts import codec
from avstream.mpegts.scanner import Scanner

with open("in.ts", "rb") as src, open("out.ts", "wb") as dst:
    for packet in Scanner(src):
        codec.encode(dst, packet)
```

Parse client data sent with a segment request:

```python
from avstream.cmcd import parse_info

info = parse_info("br=3200,bs,d=4004,mtp=25400")
print(info.object.bitrate)  # 3200
```

## What it does not do

- There are no commands: nothing here serves HLS over HTTP, cuts
  transport streams into segments, or sends audio over RTP.
- The playlist parser does not read `#EXT-X-KEY`, `#EXT-X-MAP`,
  `#EXT-X-DATERANGE` or other segment tags beyond `#EXTINF`,
  `#EXT-X-BYTERANGE` and `#EXT-X-DISCONTINUITY`; it raises `M3U8Error`
  when it meets them inside a segment.
- `DateRange` cue fields hold already encoded SCTE-35 sections as bytes;
  no SCTE-35 encoder or decoder is included.
- The SIP module reads and writes messages only; it does not open
  connections or run transactions.

## Running the tests

```
pip install .[test]
pytest
```