"""
Application-layer probe request over an already secured stream.

After a successful handshake a strategy confirms the connection is usable
by sending ``GET https://<server_name>/``. The framing follows the
negotiated ALPN: HTTP/2 for ``h2``, HTTP/1.1 for ``http/1.1`` or when no
protocol was negotiated. Any HTTP status counts as success; only transport
or framing errors fail the probe.
"""

from typing import Optional

import httpcore

from .exceptions import ProbeRequestError


HTTP2_PROTOCOLS = ("h2",)
HTTP11_PROTOCOLS = ("http/1.1", "")

USER_AGENT = b"tls-compare/0.1"


def build_request(
    server_name: str,
    port: int = 443,
    timeout: Optional[float] = None,
) -> httpcore.Request:
    """Build the ``GET /`` request sent to ``server_name``."""
    host = server_name.encode("ascii")
    authority = host if port == 443 else host + b":" + str(port).encode("ascii")
    extensions = {}
    if timeout is not None:
        extensions["timeout"] = {
            "connect": timeout,
            "read": timeout,
            "write": timeout,
            "pool": timeout,
        }
    return httpcore.Request(
        method=b"GET",
        url=httpcore.URL(scheme=b"https", host=host, port=port, target=b"/"),
        headers=[
            (b"Host", authority),
            (b"User-Agent", USER_AGENT),
            (b"Accept", b"*/*"),
        ],
        extensions=extensions,
    )


def open_connection(
    stream: httpcore.AsyncNetworkStream,
    server_name: str,
    negotiated_protocol: Optional[str],
    port: int = 443,
) -> httpcore.AsyncConnectionInterface:
    """
    Wrap ``stream`` in an HTTP connection matching the negotiated protocol.

    Raises:
        ProbeRequestError: If the negotiated protocol is not supported
    """
    origin = httpcore.Origin(scheme=b"https", host=server_name.encode("ascii"), port=port)
    protocol = negotiated_protocol or ""

    if protocol in HTTP2_PROTOCOLS:
        return httpcore.AsyncHTTP2Connection(origin=origin, stream=stream)
    if protocol in HTTP11_PROTOCOLS:
        return httpcore.AsyncHTTP11Connection(origin=origin, stream=stream)

    raise ProbeRequestError(
        code="unsupported_alpn",
        message=f"unsupported ALPN: {protocol}",
        details={"negotiated_protocol": protocol},
    )


async def issue_probe_request(
    stream: httpcore.AsyncNetworkStream,
    server_name: str,
    negotiated_protocol: Optional[str],
    port: int = 443,
    timeout: Optional[float] = None,
) -> int:
    """
    Send ``GET /`` over ``stream`` and wait for the response head.

    The body is not read. The HTTP connection (and with it ``stream``) is
    closed before returning.

    Returns:
        The HTTP status code of the response

    Raises:
        ProbeRequestError: If the protocol is unsupported or the exchange fails
    """
    connection = open_connection(stream, server_name, negotiated_protocol, port)
    request = build_request(server_name, port, timeout)

    try:
        response = await connection.handle_async_request(request)
        await response.aclose()
        return response.status
    except (httpcore.NetworkError, httpcore.ProtocolError, httpcore.TimeoutException) as e:
        raise ProbeRequestError(
            code="request_failed",
            message=str(e) or type(e).__name__,
            details={"negotiated_protocol": negotiated_protocol or ""},
        ) from e
    finally:
        await connection.aclose()
