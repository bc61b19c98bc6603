import asyncio

import httpx

from provisioner.tools.azure.public_ip import lookup_public_ip


def _transport(status: int, body: str) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text=body)

    return httpx.MockTransport(handler)


def test_lookup_returns_address() -> None:
    ip = asyncio.run(lookup_public_ip("https://echo.test/ip", transport=_transport(200, "203.0.113.9\n")))
    assert ip == "203.0.113.9"


def test_lookup_http_error_returns_none() -> None:
    assert asyncio.run(lookup_public_ip("https://echo.test/ip", transport=_transport(404, "nope"))) is None


def test_lookup_rejects_garbage() -> None:
    body = "<html>blocked</html>"
    assert asyncio.run(lookup_public_ip("https://echo.test/ip", transport=_transport(200, body))) is None


def test_lookup_retries_throttling() -> None:
    responses = iter([httpx.Response(503, text="busy"), httpx.Response(200, text="198.51.100.4")])

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    ip = asyncio.run(lookup_public_ip("https://echo.test/ip", transport=httpx.MockTransport(handler)))
    assert ip == "198.51.100.4"
