from __future__ import annotations

import h11
import httpx

from httpu.transport.constants import DEFAULT_METHOD, HTTP_VERSION

_CRLF = b"\r\n"
_FORBIDDEN_IN_LINE = (b"\r", b"\n", b" ", b"\t")
# no body is ever written, so body framing headers would announce one that never comes
_BODY_FRAMING_HEADERS = (b"content-length", b"transfer-encoding")


class FramingError(Exception):
    pass


def request_target(request: httpx.Request) -> bytes:
    target = request.extensions.get("target", request.url.raw_path)
    if isinstance(target, str):
        target = target.encode("ascii")
    return target


def serialize_request(request: httpx.Request) -> bytes:
    """
    Request line plus headers, terminated by a blank line.

    Only a subset of what a stream HTTP client writes: no body, no
    Content-Length or Transfer-Encoding, and no Host beyond what the request
    headers already carry.
    """
    try:
        method = (request.method or DEFAULT_METHOD).encode("ascii")
        target = request_target(request)
    except UnicodeEncodeError as e:
        raise FramingError(f"request line is not ascii: {e}") from e

    for part, what in ((method, "method"), (target, "request target")):
        if not part or any(c in part for c in _FORBIDDEN_IN_LINE):
            raise FramingError(f"invalid {what}: {part!r}")

    buf = bytearray()
    buf += b"%s %s %s\r\n" % (method, target, HTTP_VERSION.encode("ascii"))
    for name, value in request.headers.raw:
        if b"\r" in name or b"\n" in name or b":" in name or b"\r" in value or b"\n" in value:
            raise FramingError(f"invalid header {name!r}")
        if name.lower() in _BODY_FRAMING_HEADERS:
            continue
        buf += b"%s: %s\r\n" % (name, value)
    buf += _CRLF
    return bytes(buf)


def parse_response(datagram: bytes, request: httpx.Request) -> httpx.Response:
    """
    Parse one datagram as a complete HTTP response to `request`.

    The datagram is the whole message: a body without Content-Length runs to
    the end of the datagram, and anything that leaves the message incomplete
    raises FramingError.
    """
    conn = h11.Connection(our_role=h11.CLIENT)
    host = request.headers.get("host") or request.url.netloc.decode("ascii") or "localhost"
    try:
        # drives the parser into the response state; nothing is written anywhere
        conn.send(h11.Request(
            method=request.method or DEFAULT_METHOD,
            target=request_target(request),
            headers=[("Host", host)],
        ))
        conn.send(h11.EndOfMessage())
    except h11.LocalProtocolError as e:
        raise FramingError(f"cannot parse replies to this request: {e}") from e

    conn.receive_data(datagram)
    conn.receive_data(b"")

    head: h11.Response | None = None
    body = bytearray()
    try:
        while True:
            event = conn.next_event()
            if isinstance(event, h11.Response):
                head = event
            elif isinstance(event, h11.Data):
                body += event.data
            elif isinstance(event, h11.EndOfMessage):
                break
            elif isinstance(event, h11.InformationalResponse):
                continue
            else:
                raise FramingError(f"incomplete response (parser at {event!r})")
    except h11.RemoteProtocolError as e:
        raise FramingError(str(e)) from e

    if head is None:
        raise FramingError("no response status line")

    response = httpx.Response(
        status_code=head.status_code,
        headers=list(head.headers.raw_items()),
        stream=httpx.ByteStream(bytes(body)),
        request=request,
        extensions={
            "http_version": b"HTTP/" + head.http_version,
            "reason_phrase": head.reason,
        },
    )
    try:
        response.read()
    except httpx.DecodingError as e:
        raise FramingError(f"undecodable body: {e}") from e
    return response
