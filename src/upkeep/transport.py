"""HTTP transport for relay and capability calls.

Two execution paths share one interface:

- ``InProcessTransport`` keeps a cookie-carrying session, so cookies set by
  one response are sent with the next (the in-app path).
- ``BridgeTransport`` sends browser-like headers and recovers from
  infrastructure challenges: HTML interstitials served in place of the JSON
  body by network infrastructure in front of the relay.

The path is chosen once, by ``select_transport``.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable
from urllib.parse import urlsplit

import requests

from upkeep.config import Config
from upkeep.errors import InfrastructureChallenge, UpstreamError

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Mobile Safari/537.36"
)

_HTML_MARKERS = ("<!doctype html", "<html")


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


class TransportClient:
    """Issue a request and return its parsed JSON body.

    Subclasses provide the header set and decide whether challenge recovery
    applies.
    """

    recovers_challenges = False

    def __init__(
        self,
        config: Config,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.session = session or requests.Session()
        self._sleep = sleep

    def headers_for(self, url: str) -> dict[str, str]:
        raise NotImplementedError

    def request(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
        capability: str = "relay",
    ) -> Any:
        """Send a request and return the parsed JSON body.

        Args:
            url: Absolute request URL
            method: HTTP method
            headers: Extra headers, applied over the transport defaults
            body: JSON-serializable request body
            capability: Capability name used in error messages

        Raises:
            UpstreamError: Non-2xx status, network failure, timeout or non-JSON body
            InfrastructureChallenge: A challenge page survived one warm-up and retry
        """
        response = self._send(url, method, headers, body, capability)

        if self.recovers_challenges and self.is_challenge(response):
            logger.warning(
                "Infrastructure challenge from %s (status %s), warming up session",
                url,
                response.status_code,
            )
            self._warm_up(url)
            response = self._send(url, method, headers, body, capability)
            if self.is_challenge(response):
                logger.error("Challenge persisted after warm-up for %s", url)
                raise InfrastructureChallenge(url)

        return self._interpret(response, capability)

    def is_challenge(self, response: requests.Response) -> bool:
        """An HTML body where JSON was expected, not sent by our own backend."""
        if self.config.backend_marker_header in response.headers:
            return False
        content_type = response.headers.get("Content-Type", "").lower()
        if "text/html" in content_type:
            return True
        head = response.content[:2048].decode("utf-8", errors="ignore").lstrip().lower()
        return any(marker in head for marker in _HTML_MARKERS)

    def close(self) -> None:
        self.session.close()

    def _send(
        self,
        url: str,
        method: str,
        headers: dict[str, str] | None,
        body: Any,
        capability: str,
    ) -> requests.Response:
        merged = {**self.headers_for(url), **(headers or {})}
        logger.debug("[%s] %s %s", capability, method, url)
        try:
            response = self.session.request(
                method,
                url,
                headers=merged,
                json=body,
                timeout=self.config.request_timeout,
            )
        except requests.Timeout as e:
            raise UpstreamError(
                capability, None, f"timed out after {self.config.request_timeout}s"
            ) from e
        except requests.RequestException as e:
            raise UpstreamError(capability, None, str(e)) from e
        logger.debug("[%s] status %s", capability, response.status_code)
        return response

    def _warm_up(self, url: str) -> None:
        """Visit the origin root and the session endpoint, then pause."""
        origin = _origin(url)
        path = self.config.session_init_path
        targets = [origin + "/", origin + (path if path.startswith("/") else "/" + path)]
        headers = {**self.headers_for(url), "Accept": "text/html,application/json;q=0.9,*/*;q=0.8"}
        for target in targets:
            try:
                self.session.get(target, headers=headers, timeout=self.config.request_timeout)
            except requests.RequestException as e:
                logger.warning("Warm-up request to %s failed: %s", target, e)
        self._sleep(self.config.challenge_pause)

    def _interpret(self, response: requests.Response, capability: str) -> Any:
        if not 200 <= response.status_code < 300:
            raise UpstreamError(capability, response.status_code, response.text[:300])

        if not response.content:
            return None

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(
                capability, response.status_code, "response body is not JSON"
            ) from e

        # Some relays double-encode: the body is a JSON string holding JSON.
        if isinstance(data, str):
            try:
                return json.loads(data)
            except ValueError:
                return data
        return data


class InProcessTransport(TransportClient):
    """Session transport; cookies from earlier responses are sent along."""

    def headers_for(self, url: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }


class BridgeTransport(TransportClient):
    """Host bridge transport with browser-like headers and challenge recovery."""

    recovers_challenges = True

    def headers_for(self, url: str) -> dict[str, str]:
        origin = _origin(url)
        return {
            "Content-Type": "application/json",
            "Accept": "application/json, text/plain, */*",
            "User-Agent": BROWSER_USER_AGENT,
            "Referer": origin + "/",
            "Origin": origin,
        }


def select_transport(config: Config, session: requests.Session | None = None) -> TransportClient:
    """Pick the transport for the configured execution context."""
    if config.transport_mode == "bridge":
        return BridgeTransport(config, session=session)
    return InProcessTransport(config, session=session)
