import io
import threading
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from avstream.cair import (
    CairError,
    Client,
    Item,
    parse_duration,
    parse_playlist,
    parse_status,
    playlist_from_file,
)

STATUS_XML = """<Status>
  <Active Id="{XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX}"/>
  <Cued Id="{XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX}"/>
  <License State="Licensed|Not Licensed|Demo"/>
  <Output State="Normal|Black|Bypass|Clean"/>
  <Client Connected="y|n" Identity="IdentityString"/>
</Status>"""

PLAYLIST_XML = """<List>
  <Item Id="1" Name="Tom & Jerry" ThirdPartyId="C00000000" ScheduledAt="2024-01-02T03:04:05.678Z" Duration="00:00:30.000"/>
  <Item Id="2" Name="The News" EpgId="E1" ScheduledAt="2024-01-02T04:00:00.000+02:00" Duration="00:15:00.000"/>
</List>
"""


@pytest.mark.parametrize(
    "timecode, want",
    [
        ("00:00:00.000", timedelta(0)),
        ("00:01:15.000", timedelta(minutes=1, seconds=15)),
        ("12:34:56.789", timedelta(hours=12, minutes=34, seconds=56, milliseconds=789)),
    ],
    ids=["zero", "1min15sec", "longest"],
)
def test_timecode(timecode, want):
    assert parse_duration(timecode) == want


@pytest.mark.parametrize(
    "timecode",
    ["", "世界 Hello", "00:12:009999", "00:1122.9999", "00:ab:00.000"],
    ids=["empty", "garbage", "decimal", "colon", "letters"],
)
def test_bad_timecode(timecode):
    with pytest.raises(CairError):
        parse_duration(timecode)


def test_status():
    status = parse_status(STATUS_XML)
    assert status.active_id == "{XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX}"
    assert status.cued_id == "{XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX}"
    assert status.license_state == "Licensed|Not Licensed|Demo"
    assert status.output_state == "Normal|Black|Bypass|Clean"
    assert status.client_connected == "y|n"
    assert status.client_identity == "IdentityString"


def test_status_wrong_root():
    with pytest.raises(CairError):
        parse_status("<List/>")


def test_parse_playlist():
    playlist = parse_playlist(io.StringIO(PLAYLIST_XML))
    assert [it.name for it in playlist.items] == ["Tom & Jerry", "The News"]
    first, second = playlist.items
    assert first.third_party_id == "C00000000"
    assert first.scheduled_at == datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    assert first.duration == timedelta(seconds=30)
    assert second.epg_id == "E1"
    assert second.scheduled_at == datetime(2024, 1, 2, 2, 0, tzinfo=timezone.utc)
    assert second.end_time() == datetime(2024, 1, 2, 2, 15, tzinfo=timezone.utc)


def test_playlist_from_file(tmp_path):
    path = tmp_path / "playlist.xml"
    path.write_text(PLAYLIST_XML, encoding="utf-8")
    playlist = playlist_from_file(str(path))
    assert len(playlist.items) == 2
    assert playlist.items[0].id == "1"


def test_playlist_bad_item():
    xml = '<List><Item Id="1" ScheduledAt="yesterday" Duration="00:00:01.000"/></List>'
    with pytest.raises(CairError, match="scheduled at"):
        parse_playlist(io.StringIO(xml))


def test_end_times_are_contiguous():
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    items = [
        Item(name="Health insurance", duration=timedelta(seconds=30),
             scheduled_at=now - timedelta(seconds=5), third_party_id="C00000000"),
        Item(name="Delicious beverage", duration=timedelta(seconds=15),
             scheduled_at=now + timedelta(seconds=30 - 5), third_party_id="C00000000"),
        Item(name="Interesting Series", duration=timedelta(seconds=30),
             scheduled_at=now + timedelta(seconds=30 - 5 + 15), third_party_id="P00000000"),
        Item(name="The News", duration=timedelta(minutes=15),
             scheduled_at=now + timedelta(seconds=30 - 5 + 15 + 30),
             third_party_id="T00000000"),
    ]
    for current, following in zip(items, items[1:]):
        assert current.end_time() == following.scheduled_at
    assert items[-1].end_time() == now + timedelta(seconds=70, minutes=15)


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path == "/video/list":
            body = PLAYLIST_XML.encode()
        elif self.path == "/videos/status":
            body = STATUS_XML.encode()
        else:
            self.send_response(404)
            self.end_headers()
            return
        self.send_response(200)
        self.send_header("Content-Type", "text/xml")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def server_root():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_client_playlist(server_root):
    client = Client(server_root, timeout=5)
    playlist = client.playlist("video")
    assert [it.id for it in playlist.items] == ["1", "2"]


def test_client_status(server_root):
    status = Client(server_root, timeout=5).status()
    assert status.client_identity == "IdentityString"


def test_client_error_status(server_root):
    with pytest.raises(CairError, match="404"):
        Client(server_root, timeout=5).playlist("logo")


def test_client_default_root():
    assert Client().root == "http://127.0.0.1:5521"