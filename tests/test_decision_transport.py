#tests/test_decision_transport.py

from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from decision.errors import ParseFailure, TransportFailure
from decision.transport import HttpOracleTransport
from env.schema import OracleConfig

CONFIG = OracleConfig(base_url="http://oracle.test/", endpoint="/api/generate", model="tiny", timeout=1.0)


def make_transport(handler) -> HttpOracleTransport:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpOracleTransport(CONFIG, client=client)


def test_posts_non_streaming_request_and_returns_text():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"response": '{"tool": "wait"}', "done": True})

    transport = make_transport(handler)
    try:
        assert transport.submit("hello").result(timeout=5) == '{"tool": "wait"}'
    finally:
        transport.close()

    (request,) = seen
    assert str(request.url) == "http://oracle.test/api/generate"
    assert json.loads(request.content) == {"model": "tiny", "prompt": "hello", "stream": False}
    assert transport.model == "tiny"


def test_non_success_status_is_transport_failure():
    transport = make_transport(lambda request: httpx.Response(503, text="busy"))
    try:
        with pytest.raises(TransportFailure) as info:
            transport.submit("hello").result(timeout=5)
    finally:
        transport.close()
    assert info.value.details["status_code"] == 503


def test_connection_error_is_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = make_transport(handler)
    try:
        with pytest.raises(TransportFailure) as info:
            transport.submit("hello").result(timeout=5)
    finally:
        transport.close()
    assert "ConnectError" in info.value.message


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="not json at all"),
        httpx.Response(200, json={"done": True}),
        httpx.Response(200, json=["response"]),
    ],
)
def test_unusable_body_is_parse_failure(response):
    transport = make_transport(lambda request: response)
    try:
        with pytest.raises(ParseFailure):
            transport.submit("hello").result(timeout=5)
    finally:
        transport.close()
