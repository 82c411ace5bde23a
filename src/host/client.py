"""Request/response client for the host process."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from src.host import channels
from src.host.errors import HostUnavailableError

logger = logging.getLogger(__name__)


@runtime_checkable
class HostClient(Protocol):
    """Anything that can issue a request on a named host channel."""

    async def invoke(self, channel: str, payload: Any = None) -> Any:
        """Send *payload* on *channel* and return the decoded result.

        Raises :class:`HostUnavailableError` when the host cannot be reached.
        """
        ...


class HttpHostClient:
    """Talks to the host over HTTP: ``POST {base_url}/invoke/{channel}``.

    The request body is ``{"payload": ...}``; the response body is the
    channel's JSON result as-is.

    Args:
        base_url: Host root URL.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Return (and lazily create) the shared httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def invoke(self, channel: str, payload: Any = None) -> Any:
        """Raises ValueError for a channel the host does not serve."""
        if channel not in channels.REQUEST_CHANNELS:
            msg = f"Unknown host channel '{channel}'"
            raise ValueError(msg)
        client = self._get_client()
        try:
            resp = await client.post(f"/invoke/{channel}", json={"payload": payload})
        except httpx.TimeoutException as exc:
            raise HostUnavailableError(channel, "timed out") from exc
        except httpx.HTTPError as exc:
            raise HostUnavailableError(channel, str(exc) or type(exc).__name__) from exc

        if resp.status_code != 200:
            logger.warning("Host %s returned %d: %s", channel, resp.status_code, resp.text[:200])
            raise HostUnavailableError(channel, f"status {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise HostUnavailableError(channel, "invalid JSON response") from exc

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def succeeded(result: Any) -> bool:
    """True when a command response reports ``success: true``."""
    return isinstance(result, dict) and bool(result.get("success"))


def failure_message(result: Any, default: str) -> str:
    """The host's explanation of a logical failure, or *default*."""
    if isinstance(result, dict):
        return result.get("message") or result.get("error") or default
    return default
