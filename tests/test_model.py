import struct

import pytest

from avstream.m3u8.model import (
    DEFAULT_KEY_FORMAT,
    NO_CLOSED_CAPTIONS,
    ByteRange,
    CCInfo,
    EncryptMethod,
    HDCPLevel,
    Key,
    Map,
    MediaType,
    PlaylistType,
    Rendition,
    SessionData,
    Variant,
)


def test_key_string():
    iv = struct.pack("<QQ", 10000, 98765432)
    k = Key(
        method=EncryptMethod.AES_128,
        uri="magic.key",
        iv=iv,
        format=DEFAULT_KEY_FORMAT,
        format_versions=[1, 2, 5],
    )
    want = (
        '#EXT-X-KEY:METHOD=AES-128,URI="magic.key",'
        'IV=0x1027000000000000780ae30500000000,'
        'KEYFORMAT="identity",KEYFORMATVERSIONS="1/2/5"'
    )
    assert str(k) == want


def test_key_rejects_short_iv():
    with pytest.raises(ValueError):
        Key(iv=b"\x00" * 8)


def test_key_omits_optional_attributes():
    text = str(Key(method=EncryptMethod.SAMPLE_AES, uri="k"))
    assert text.startswith("#EXT-X-KEY:METHOD=SAMPLE-AES,")
    assert "KEYFORMAT" not in text


@pytest.mark.parametrize(
    "variant, want",
    [
        (
            Variant(
                uri="url_0/193039199_mp4_h264_aac_hd_7.m3u8",
                bandwidth=2149280,
                codecs=["mp4a.40.2", "avc1.64001f"],
                resolution=(1280, 720),
            ),
            '#EXT-X-STREAM-INF:BANDWIDTH=2149280,CODECS="mp4a.40.2,avc1.64001f",'
            "RESOLUTION=1280x720\nurl_0/193039199_mp4_h264_aac_hd_7.m3u8",
        ),
        (
            Variant(uri="small.m3u8", bandwidth=10000, frame_rate=60 / 1.001),
            "#EXT-X-STREAM-INF:BANDWIDTH=10000,FRAME-RATE=59.940\nsmall.m3u8",
        ),
    ],
)
def test_variant_string(variant, want):
    assert str(variant) == want


def test_variant_no_closed_captions_omitted():
    v = Variant(uri="a.m3u8", bandwidth=1, closed_captions=NO_CLOSED_CAPTIONS)
    assert "CLOSED-CAPTIONS" not in str(v)


def test_variant_hdcp_and_groups():
    v = Variant(uri="a.m3u8", bandwidth=1, hdcp=HDCPLevel.TYPE_1, audio="music")
    first_line = str(v).splitlines()[0]
    assert "HDCP-LEVEL=TYPE-1" in first_line.split(",")
    assert 'AUDIO="music"' in first_line.split(",")


@pytest.mark.parametrize(
    "sd, want",
    [
        (
            SessionData(id="1234", value="5678", language="indonesian"),
            '#EXT-X-SESSION-DATA:DATA-ID="1234",VALUE="5678",LANGUAGE="indonesian"',
        ),
        (
            SessionData(id="1234", uri="hello/hi.json"),
            '#EXT-X-SESSION-DATA:DATA-ID="1234",URI="hello/hi.json"',
        ),
        (
            SessionData(id="1234", value="5678"),
            '#EXT-X-SESSION-DATA:DATA-ID="1234",VALUE="5678"',
        ),
    ],
)
def test_session_data_string(sd, want):
    assert str(sd) == want


def test_byte_range_string():
    assert str(ByteRange(69, 420)) == "69@420"
    assert str(ByteRange(69)) == "69"


def test_map_string():
    assert str(Map(uri="init.mp4")) == '#EXT-X-MAP:URI="init.mp4"'
    assert str(Map(uri="init.mp4", byte_range=ByteRange(27, 46))).endswith(
        ",BYTERANGE=27@46"
    )


def test_cc_info_string():
    assert str(CCInfo(1)) == "CC1"
    assert str(CCInfo(5, service=True)) == "SERVICE5"


def test_enum_strings_in_tags():
    captions = Rendition(
        type=MediaType.CLOSED_CAPTIONS, name="c", group="g", instream_id=CCInfo(1)
    )
    assert "TYPE=CLOSED-CAPTIONS" in str(captions).split(":", 1)[1].split(",")

    variant = Variant(uri="a.m3u8", bandwidth=1, hdcp=HDCPLevel.TYPE_0)
    assert "HDCP-LEVEL=TYPE-0" in str(variant).splitlines()[0].split(",")

    key = Key(method=EncryptMethod.NONE, uri="k")
    assert str(key).startswith("#EXT-X-KEY:METHOD=NONE,")


def test_playlist_type_strings():
    assert PlaylistType.EVENT.__str__() == "EVENT"
    assert PlaylistType.VOD.__str__() == "VOD"


def test_rendition_string():
    r = Rendition(
        type=MediaType.AUDIO,
        uri="audio/en.m3u8",
        group="aac",
        language="en",
        name="English",
        default=True,
        channels=["2"],
    )
    text = str(r)
    assert text.startswith('#EXT-X-MEDIA:NAME="English",TYPE=AUDIO,URI="audio/en.m3u8"')
    attrs = text.split(":", 1)[1].split(",")
    assert 'GROUP-ID="aac"' in attrs
    assert "DEFAULT=YES" in attrs
    assert "AUTOSELECT=YES" not in attrs


def test_rendition_instream_id_only_for_captions():
    cc = CCInfo(2)
    audio = Rendition(type=MediaType.AUDIO, name="a", group="g", instream_id=cc)
    captions = Rendition(type=MediaType.CLOSED_CAPTIONS, name="c", group="g", instream_id=cc)
    assert "INSTREAM-ID" not in str(audio)
    assert 'INSTREAM-ID="CC2"' in str(captions)


def test_quoting_escapes_double_quotes():
    sd = SessionData(id='a"b')
    assert str(sd) == '#EXT-X-SESSION-DATA:DATA-ID="a\\"b"'