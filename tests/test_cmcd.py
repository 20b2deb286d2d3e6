from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from avstream.cmcd import (
    CMCDError,
    Info,
    Object,
    ObjectType,
    Range,
    REAL_TIME,
    Request,
    Session,
    Status,
    StreamFormat,
    extract_info,
    parse_info,
)

SID = "6e2fb550-c457-11e9-bb97-0800200c9a66"

CASES = {
    "simple": (
        f'sid="{SID}"',
        Info(session=Session(id=SID, play_rate=REAL_TIME)),
    ),
    "all_four": (
        f'br=3200,bs,d=4004,mtp=25400,ot=v,rtp=15000,sid="{SID}",tb=6000',
        Info(
            request=Request(throughput=25400),
            object=Object(
                bitrate=3200,
                duration=timedelta(milliseconds=4004),
                type=ObjectType.VIDEO,
                top_bitrate=6000,
            ),
            status=Status(starved=True, max_throughput=15000),
            session=Session(id=SID, play_rate=REAL_TIME),
        ),
    ),
    "booleans": (
        "bs,su,",
        Info(
            status=Status(starved=True, max_throughput=0),
            request=Request(startup=True),
            session=Session(play_rate=REAL_TIME),
        ),
    ),
    "range": (
        'nrr="12323-48763",d=4004',
        Info(
            request=Request(next_range=Range(12323, 48763)),
            object=Object(duration=timedelta(milliseconds=4004)),
            session=Session(play_rate=REAL_TIME),
        ),
    ),
    "custom": (
        'd=4004,com.example.int=500,stringy="yamum",aBool',
        Info(
            object=Object(duration=timedelta(milliseconds=4004)),
            session=Session(play_rate=REAL_TIME),
            custom={"com.example.int": 500, "stringy": "yamum", "aBool": True},
        ),
    ),
}


@pytest.mark.parametrize("name", sorted(CASES))
def test_parse(name):
    query, want = CASES[name]
    assert parse_info(query) == want


@pytest.mark.parametrize("name", sorted(CASES))
def test_reencode(name):
    query, _ = CASES[name]
    info = parse_info(query)
    assert sorted(info.encode().split(",")) == sorted(query.strip(",").split(","))


def test_parse_info_example():
    url = "http://test.example.com/?CMCD=br%3D3200%2Cbs%2Cd%3D4004%2Cmtp%3D25400"
    param = parse_qs(urlparse(url).query)["CMCD"][0]
    assert param == "br=3200,bs,d=4004,mtp=25400"
    info = parse_info(param)
    assert info.object.bitrate == 3200


def test_extract_info_headers_case_insensitive():
    header = {
        "cmcd-request": "mtp=25400",
        "CMCD-Object": "br=3200,d=4004",
        "CMCD-Status": "bs",
        "CMCD-Session": [f'sid="{SID}"'],
    }
    info = extract_info(header)
    assert info.request.throughput == 25400
    assert info.object.bitrate == 3200
    assert info.status.starved is True
    assert info.session.id == SID
    assert info.custom is None


def test_extract_info_missing_headers():
    assert extract_info({}) == Info()


def test_buffer_length_rounded_to_100ms():
    assert Request(buf_length=timedelta(milliseconds=1250)).encode() == "bl=1300"
    assert Request(deadline=timedelta(milliseconds=1249)).encode() == "dl=1200"


def test_duration_truncated_to_milliseconds():
    obj = Object(duration=timedelta(microseconds=4004900))
    assert obj.encode() == "d=4004"


def test_next_object_round_trip():
    req = Request(next="../seg 2.ts")
    encoded = req.encode()
    assert encoded == 'nor="..%2Fseg+2.ts"'
    assert parse_info(encoded).request.next == "../seg 2.ts"


def test_session_play_rate_and_format():
    ses = Session(content_id="movie", play_rate=2.0, format=StreamFormat.HLS)
    assert ses.encode() == 'cid="movie",pr=2,sf=h'
    back = parse_info(ses.encode()).session
    assert back.play_rate == 2.0
    assert back.format is StreamFormat.HLS


def test_stream_type_live():
    assert parse_info("st=l").session.is_live() is True
    assert parse_info("st=v").session.is_live() is False


def test_range_str():
    assert str(Range(5, -1)) == "5-"
    assert str(Range(5, 10)) == "5-10"


def test_custom_false_bool_encodes_key():
    assert Info(custom={"flag": False}).encode() == "flag"


def test_unknown_object_type_kept():
    assert parse_info("ot=zz").object.type == "zz"


@pytest.mark.parametrize(
    "query, prefix",
    [
        ("bl=abc", "request:"),
        ('nrr="12323"', "request:"),
        ("nor=%zz", "request:"),
        ("br=fast", "object:"),
        ("rtp=x", "status:"),
        ("sf=dd", "session:"),
        ("sf=x", "session:"),
        ("pr=quick", "session:"),
    ],
)
def test_parse_errors(query, prefix):
    with pytest.raises(CMCDError) as excinfo:
        parse_info(query)
    assert str(excinfo.value).startswith(prefix)