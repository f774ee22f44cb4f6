"""HTTP transport with mirror failover and exponential backoff."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

import aiohttp

from parkwatch._constants import USER_AGENT
from parkwatch.exceptions import ParkwatchTransportError, UpstreamUnavailableError

_logger = logging.getLogger(__name__)


class QueryTransport(Protocol):
    """Structural transport interface used by the query modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`MirrorClient`) concrete.
    """

    async def fetch(
        self,
        query: str,
        *,
        attempts: int | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        ...


def backoff_delay(base: float, attempt_index: int) -> float:
    """Delay observed after failed attempt ``attempt_index`` (0-based)."""
    return base * (2**attempt_index)


class MirrorClient:
    """Issue Overpass queries against a rotating list of equivalent mirrors.

    Attempt ``i`` targets ``mirrors[i % len(mirrors)]``, so attempt 0 always
    starts at the first mirror and consecutive attempts never hit the same
    mirror when more than one is configured.  A failed attempt is followed
    by ``backoff_base * 2**i`` seconds of sleep unless it was the last one.

    Cancelling the awaiting task aborts the in-flight request or the
    pending backoff sleep immediately.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        mirrors: Sequence[str],
        *,
        attempts: int = 3,
        timeout: float = 25.0,
        backoff_base: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if not mirrors:
            raise ValueError("MirrorClient requires at least one mirror")
        self._http = http_session
        self._mirrors = tuple(mirrors)
        self._attempts = attempts
        self._timeout = timeout
        self._backoff_base = backoff_base
        self._sleep = sleep

    @property
    def mirrors(self) -> tuple[str, ...]:
        return self._mirrors

    def mirror_for_attempt(self, attempt_index: int) -> str:
        return self._mirrors[attempt_index % len(self._mirrors)]

    async def fetch(
        self,
        query: str,
        *,
        attempts: int | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Run *query*, failing over between mirrors.

        Raises
        ------
        UpstreamUnavailableError
            Once every attempt has failed.  ``last_error`` carries the
            failure of the final attempt.
        """
        total = attempts if attempts is not None else self._attempts
        per_attempt = timeout if timeout is not None else self._timeout
        if total < 1:
            raise ValueError(f"attempts must be >= 1, got {total}")

        last_error: ParkwatchTransportError | None = None
        for attempt in range(total):
            url = self.mirror_for_attempt(attempt)
            try:
                result = await self._post_once(url, query, per_attempt)
            except ParkwatchTransportError as exc:
                last_error = exc
                _logger.warning(
                    "Upstream attempt %d/%d against %s failed: %s",
                    attempt + 1,
                    total,
                    url,
                    exc,
                )
                if attempt < total - 1:
                    delay = backoff_delay(self._backoff_base, attempt)
                    _logger.debug("Backing off %.3fs before next mirror", delay)
                    await self._sleep(delay)
                continue
            _logger.debug("Upstream attempt %d succeeded via %s", attempt + 1, url)
            return result

        raise UpstreamUnavailableError(
            f"All {total} upstream attempts failed: {last_error}",
            attempts=total,
            last_error=last_error,
        ) from last_error

    async def _post_once(self, url: str, query: str, timeout: float) -> dict[str, Any]:
        """POST a form-encoded query to one mirror and decode its JSON body."""
        headers = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        try:
            async with self._http.post(
                url,
                data={"data": query},
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                raw = await resp.read()
                if not 200 <= resp.status < 300:
                    raise ParkwatchTransportError(
                        f"HTTP {resp.status} from {url}: {raw[:200].decode('utf-8', errors='replace')}",
                        status_code=resp.status,
                        endpoint=url,
                    )
        except ParkwatchTransportError:
            raise
        except TimeoutError as exc:
            raise ParkwatchTransportError(
                f"Request to {url} timed out after {timeout}s",
                endpoint=url,
            ) from exc
        except aiohttp.ClientError as exc:
            raise ParkwatchTransportError(
                f"Request to {url} failed: {exc}",
                endpoint=url,
            ) from exc

        try:
            body = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ParkwatchTransportError(
                f"Invalid JSON from {url}: {raw[:200].decode('utf-8', errors='replace')}",
                endpoint=url,
            ) from exc

        if not isinstance(body, dict):
            raise ParkwatchTransportError(
                f"Unexpected payload type from {url}: {type(body).__name__}",
                endpoint=url,
            )
        return body
