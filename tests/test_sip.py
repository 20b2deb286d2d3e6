import io

import pytest

from avstream.sip import (
    METHOD_INVITE,
    URI,
    Address,
    Message,
    Request,
    SIPError,
    Transport,
    Via,
    parse_address,
    parse_request,
    parse_response,
    parse_start_line,
    read_message,
    read_request,
    write_request,
)


def _invite_request(**overrides):
    header = {
        "Call-Id": ["a84b4c76e66710@pc33.example.com"],
        "Cseq": ["314159 " + METHOD_INVITE],
        "Contact": ["<sip:alice@pc33.example.com>"],
    }
    fields = dict(
        method=METHOD_INVITE,
        uri="sip:bob@example.com",
        to=Address(name="Bob", uri=URI(scheme="sip", opaque="bob@example.com")),
        from_=Address(name="Alice", uri=URI(scheme="sip", opaque="alice@example.com")),
        via=Via(address="pc33.example.com", branch="776asdhds"),
        header=header,
    )
    fields.update(overrides)
    return Request(**fields)


def test_write_request():
    out = io.BytesIO()
    n = write_request(out, _invite_request())
    text = out.getvalue().decode()
    assert n == len(out.getvalue())
    assert text.startswith("INVITE sip:bob@example.com SIP/2.0\r\n")
    assert text.endswith("\r\n\r\n")
    assert "To: Bob <sip:bob@example.com>\r\n" in text
    assert "From: Alice <sip:alice@example.com>\r\n" in text
    assert "Via: SIP/2.0/UDP pc33.example.com;branch=z9hG4bK776asdhds\r\n" in text
    assert "Max-Forwards: 70\r\n" in text
    assert "Call-Id: a84b4c76e66710@pc33.example.com\r\n" in text


def test_write_request_with_body_round_trip():
    body = b"v=0\r\n"
    req = _invite_request(content_length=len(body), body=body)
    req.header["Max-Forwards"] = ["10"]
    out = io.BytesIO()
    n = write_request(out, req)
    assert n == len(out.getvalue())
    back = read_request(out.getvalue())
    assert back.method == METHOD_INVITE
    assert back.content_length == len(body)
    assert back.header["Max-Forwards"] == ["10"]
    assert back.body.read() == body


def test_write_request_missing_call_id():
    req = _invite_request(header={"Cseq": ["1 INVITE"]})
    with pytest.raises(SIPError, match="Call-ID"):
        write_request(io.BytesIO(), req)


def test_write_request_empty_branch():
    req = _invite_request(via=Via(address="pc33.example.com"))
    with pytest.raises(SIPError, match="branch"):
        write_request(io.BytesIO(), req)


def test_write_request_empty_to_uri():
    req = _invite_request(to=Address(name="Bob"))
    with pytest.raises(SIPError, match="to header"):
        write_request(io.BytesIO(), req)


@pytest.mark.parametrize(
    "addr,want",
    [
        ("sip:test@example.com", "<sip:test@example.com>"),
        ("<sip:test@example.com>", "<sip:test@example.com>"),
        ("sip:+1234@example.com;tag=887s", "<sip:+1234@example.com>;tag=887s"),
        ("<sip:test@example.com>;tag=1234", "<sip:test@example.com>;tag=1234"),
        ("Oliver <sip:test@example.com>", "Oliver <sip:test@example.com>"),
        ("Oliver <sip:test@example.com>;tag=1234", "Oliver <sip:test@example.com>;tag=1234"),
    ],
)
def test_address(addr, want):
    assert str(parse_address(addr)) == want


def test_parse_address_fields():
    addr = parse_address("  Oliver <sip:test@example.com>;tag=1234 ")
    assert addr == Address(
        name="Oliver", uri=URI(scheme="sip", opaque="test@example.com"), tag="1234"
    )


@pytest.mark.parametrize(
    "addr,message",
    [
        ("sip:test@example.com;branch=1", "tag="),
        ("Oliver <sip:test@example.com", "closing angle bracket"),
        ("Oliver sip:test@example.com", "angle bracket after name"),
    ],
)
def test_parse_bad_address(addr, message):
    with pytest.raises(SIPError, match=message):
        parse_address(addr)


def test_via_string():
    via = Via(transport=Transport.TCP, address="host.example.com", branch="abc")
    assert str(via) == "SIP/2.0/TCP host.example.com;branch=z9hG4bKabc"
    assert str(Via(transport=7, address="h", branch="b")) == "SIP/2.0/unknown h;branch=z9hG4bKb"


INVITE = (
    "INVITE sip:bob@biloxi.example.com SIP/2.0\r\n"
    "Via: SIP/2.0/UDP pc33.atlanta.example.com;branch=z9hG4bK776asdhds\r\n"
    "Max-Forwards: 70\r\n"
    "To: Bob <sip:bob@biloxi.example.com>\r\n"
    "From: Alice <sip:alice@atlanta.example.com>;tag=1928301774\r\n"
    "Call-ID: a84b4c76e66710@pc33.atlanta.example.com\r\n"
    "CSeq: 314159 INVITE\r\n"
    "Contact: <sip:alice@pc33.atlanta.example.com>\r\n"
    "Content-Type: application/sdp\r\n"
    "Content-Length: 4\r\n"
    "\r\n"
    "v=0\n"
)


def test_read_request():
    req = read_request(io.BytesIO(INVITE.encode()))
    assert req.method == "INVITE"
    assert req.uri == "sip:bob@biloxi.example.com"
    assert req.content_length == 4
    assert req.header["Call-Id"] == ["a84b4c76e66710@pc33.atlanta.example.com"]
    assert req.header["Cseq"] == ["314159 INVITE"]
    assert req.body.read() == b"v=0\n"


def test_read_request_bad_version():
    with pytest.raises(SIPError, match="unknown version"):
        read_request("INVITE sip:bob@example.com SIP/3.0\r\n\r\n")


def test_read_request_bad_content_length():
    with pytest.raises(SIPError, match="content-length"):
        read_request("INVITE sip:bob@example.com SIP/2.0\r\nContent-Length: ten\r\n\r\n")


def test_read_message_unterminated_header():
    with pytest.raises(SIPError, match="EOF"):
        read_message("INVITE sip:bob@example.com SIP/2.0\r\nTo: x\r\n")


RESPONSE = """SIP/2.0 200 OK
Via: SIP/2.0/UDP server10.example.com
   ;branch=z9hG4bKnashds8;received=192.0.2.3
Via: SIP/2.0/UDP bigbox3.site3.example.com
   ;branch=z9hG4bK77ef4c2312983.1;received=192.0.2.2
Via: SIP/2.0/UDP pc33.example.com
   ;branch=z9hG4bK776asdhds ;received=192.0.2.1
To: Bob <sip:bob@example.com>;tag=a6c85cf
From: Alice <sip:alice@example.com>;tag=1928301774
Call-ID: a84b4c76e66710@pc33.example.com
CSeq: 314159 INVITE
Contact: <sip:bob@192.0.2.4>
Content-Type: application/sdp
Content-Length: 131

..."""


def test_response():
    msg = read_message(RESPONSE)
    resp = parse_response(msg)
    assert resp.status_code == 200
    assert resp.status == "OK"
    assert resp.content_length == 131
    assert resp.header["Via"] == [
        "SIP/2.0/UDP server10.example.com ;branch=z9hG4bKnashds8;received=192.0.2.3",
        "SIP/2.0/UDP bigbox3.site3.example.com ;branch=z9hG4bK77ef4c2312983.1;received=192.0.2.2",
        "SIP/2.0/UDP pc33.example.com ;branch=z9hG4bK776asdhds ;received=192.0.2.1",
    ]
    assert resp.body.read() == b"..."


def test_parse_response_bad_status_code():
    msg = Message(start_line=("SIP/2.0", "abc", "OK"), header={}, body=io.BytesIO())
    with pytest.raises(SIPError, match="bad status code"):
        parse_response(msg)


def test_parse_request_from_message():
    msg = Message(
        start_line=("BYE", "sip:bob@example.com", "SIP/2.0"),
        header={"Content-Length": ["0"]},
        body=io.BytesIO(),
    )
    req = parse_request(msg)
    assert (req.method, req.uri, req.content_length) == ("BYE", "sip:bob@example.com", 0)


def test_parse_start_line():
    assert parse_start_line("SIP/2.0  200 OK") == ("SIP/2.0", "200", "OK")
    with pytest.raises(SIPError, match="expected 3 fields"):
        parse_start_line("SIP/2.0 200")