"""Tests for transport selection and infrastructure challenge recovery."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from upkeep.config import Config
from upkeep.errors import InfrastructureChallenge, UpstreamError
from upkeep.transport import (
    BROWSER_USER_AGENT,
    BridgeTransport,
    InProcessTransport,
    select_transport,
)

URL = "https://relay.example.com/api/yandex/gpt"
CHALLENGE_PAGE = b"<!DOCTYPE html><html><head><title>Checking your browser</title></head></html>"


def _response(status=200, body=b"", content_type="application/json", headers=None):
    response = requests.Response()
    response.status_code = status
    response._content = body
    response.encoding = "utf-8"
    response.url = URL
    if content_type:
        response.headers["Content-Type"] = content_type
    for key, value in (headers or {}).items():
        response.headers[key] = value
    return response


def _json_response(data, status=200, headers=None):
    return _response(status, json.dumps(data).encode("utf-8"), headers=headers)


def _challenge_response():
    return _response(403, CHALLENGE_PAGE, content_type="text/html; charset=utf-8")


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def sleep():
    return MagicMock()


class TestSelectTransport:

    def test_in_process_by_default(self, session):
        assert isinstance(select_transport(Config(), session=session), InProcessTransport)

    def test_bridge(self, session):
        transport = select_transport(Config(transport_mode="bridge"), session=session)
        assert isinstance(transport, BridgeTransport)
        assert transport.session is session


class TestChallengeDetection:

    @pytest.fixture
    def transport(self, session):
        return BridgeTransport(Config(), session=session)

    def test_json_is_not_challenge(self, transport):
        assert transport.is_challenge(_json_response({"ok": True})) is False

    def test_html_content_type(self, transport):
        assert transport.is_challenge(_challenge_response()) is True

    def test_html_body_with_json_content_type(self, transport):
        response = _response(200, b"\n  <html><body>Just a moment...</body></html>")
        assert transport.is_challenge(response) is True

    def test_backend_marker_header_wins(self, transport):
        response = _response(
            502, CHALLENGE_PAGE, content_type="text/html",
            headers={"X-Upkeep-Backend": "relay"},
        )
        assert transport.is_challenge(response) is False


class TestBridgeTransport:

    def test_plain_success(self, session, sleep):
        session.request.return_value = _json_response([{"title": "Manual", "url": "https://x/m.pdf"}])
        transport = BridgeTransport(Config(), session=session, sleep=sleep)

        data = transport.request(URL, "POST", body={"query": "abc"})

        assert data == [{"title": "Manual", "url": "https://x/m.pdf"}]
        session.get.assert_not_called()
        sleep.assert_not_called()

    def test_browser_headers(self, session, sleep):
        session.request.return_value = _json_response({})
        transport = BridgeTransport(Config(), session=session, sleep=sleep)

        transport.request(URL, "POST", headers={"X-Trace": "1"}, body={})

        headers = session.request.call_args.kwargs["headers"]
        assert headers["User-Agent"] == BROWSER_USER_AGENT
        assert headers["Origin"] == "https://relay.example.com"
        assert headers["Referer"] == "https://relay.example.com/"
        assert headers["X-Trace"] == "1"
        assert session.request.call_args.kwargs["json"] == {}

    def test_challenge_then_success(self, session, sleep):
        """One warm-up, one retry, then the JSON body is returned."""
        session.request.side_effect = [_challenge_response(), _json_response({"text": "ok"})]
        config = Config(challenge_pause=2.0)
        transport = BridgeTransport(config, session=session, sleep=sleep)

        data = transport.request(URL, "POST", body={"url": "https://x/m.pdf"})

        assert data == {"text": "ok"}
        assert session.request.call_count == 2
        assert [c.args[0] for c in session.get.call_args_list] == [
            "https://relay.example.com/",
            "https://relay.example.com/api/health",
        ]
        sleep.assert_called_once_with(2.0)

    def test_persistent_challenge_raises(self, session, sleep):
        session.request.side_effect = [_challenge_response(), _challenge_response()]
        transport = BridgeTransport(Config(), session=session, sleep=sleep)

        with pytest.raises(InfrastructureChallenge) as exc:
            transport.request(URL, "POST", body={})

        assert session.request.call_count == 2
        assert session.get.call_count == 2
        assert sleep.call_count == 1
        assert exc.value.url == URL
        assert "browser" in exc.value.hint

    def test_warm_up_failure_still_retries(self, session, sleep):
        session.request.side_effect = [_challenge_response(), _json_response([1])]
        session.get.side_effect = requests.ConnectionError("refused")
        transport = BridgeTransport(Config(), session=session, sleep=sleep)

        assert transport.request(URL) == [1]
        assert session.request.call_count == 2

    def test_custom_session_init_path(self, session, sleep):
        session.request.side_effect = [_challenge_response(), _json_response({})]
        transport = BridgeTransport(Config(session_init_path="api/session"), session=session, sleep=sleep)

        transport.request(URL)

        assert session.get.call_args_list[1].args[0] == "https://relay.example.com/api/session"
        assert session.get.call_args_list[1].kwargs["timeout"] == 60.0


class TestInProcessTransport:

    def test_no_challenge_recovery(self, session, sleep):
        session.request.return_value = _response(200, CHALLENGE_PAGE, content_type="text/html")
        transport = InProcessTransport(Config(), session=session, sleep=sleep)

        with pytest.raises(UpstreamError):
            transport.request(URL)

        assert session.request.call_count == 1
        session.get.assert_not_called()
        sleep.assert_not_called()

    def test_json_headers(self, session):
        session.request.return_value = _json_response({})
        InProcessTransport(Config(), session=session).request(URL)

        headers = session.request.call_args.kwargs["headers"]
        assert headers == {"Content-Type": "application/json", "Accept": "application/json"}
        assert session.request.call_args.kwargs["timeout"] == 60.0


class TestResponseInterpretation:

    @pytest.fixture
    def transport(self, session):
        return InProcessTransport(Config(), session=session)

    def test_non_2xx_raises_upstream_error(self, session, transport):
        session.request.return_value = _json_response({"error": "Unauthorized"}, status=401)

        with pytest.raises(UpstreamError) as exc:
            transport.request(URL, capability="completion")

        assert exc.value.status == 401
        assert exc.value.capability == "completion"
        assert "Unauthorized" in str(exc.value)

    def test_double_encoded_json(self, session, transport):
        inner = json.dumps([{"task_name": "Clean"}])
        session.request.return_value = _response(200, json.dumps(inner).encode("utf-8"))

        assert transport.request(URL) == [{"task_name": "Clean"}]

    def test_plain_json_string(self, session, transport):
        session.request.return_value = _response(200, b'"just text"')
        assert transport.request(URL) == "just text"

    def test_empty_body(self, session, transport):
        session.request.return_value = _response(204, b"", content_type=None)
        assert transport.request(URL) is None

    def test_non_json_body(self, session, transport):
        session.request.return_value = _response(200, b"plain words", content_type="text/plain")
        with pytest.raises(UpstreamError, match="not JSON"):
            transport.request(URL)

    def test_timeout(self, session, transport):
        session.request.side_effect = requests.Timeout("read timed out")

        with pytest.raises(UpstreamError) as exc:
            transport.request(URL, capability="search")

        assert exc.value.status is None
        assert exc.value.capability == "search"
        assert "timed out" in str(exc.value)

    def test_connection_error(self, session, transport):
        session.request.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(UpstreamError, match="connection refused"):
            transport.request(URL)
