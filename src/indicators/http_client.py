import asyncio
import json
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

import requests

from .errors import MalformedPayloadError, TransportError


LOGGER = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: bytes
    headers: Mapping[str, str]


Transport = Callable[[str, str, Mapping[str, str], float], Awaitable[HttpResponse]]


def _blocking_requests_call(
    method: str, url: str, headers: Mapping[str, str], timeout_seconds: float
) -> HttpResponse:
    response = requests.request(method, url, headers=dict(headers), timeout=timeout_seconds)
    return HttpResponse(
        status_code=response.status_code,
        body=response.content,
        headers=dict(response.headers.items()),
    )


async def requests_transport(
    method: str, url: str, headers: Mapping[str, str], timeout_seconds: float
) -> HttpResponse:
    return await asyncio.to_thread(_blocking_requests_call, method, url, headers, timeout_seconds)


class AsyncHttpClient:
    def __init__(
        self,
        transport: Transport = requests_transport,
        rate_limit_per_second: float = 5.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        request_timeout_seconds: float = 15.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._interval = 1.0 / rate_limit_per_second if rate_limit_per_second > 0 else 0.0
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._request_timeout_seconds = request_timeout_seconds
        self._sleep = sleep
        self._now = now
        self._next_allowed_time = 0.0

    async def _wait_for_rate_limit(self) -> None:
        # reserve a slot before awaiting so concurrent callers queue behind it
        current = self._now()
        slot = max(current, self._next_allowed_time)
        self._next_allowed_time = slot + self._interval
        if slot > current:
            await self._sleep(slot - current)

    async def _request(self, url: str, headers: Optional[Mapping[str, str]]) -> HttpResponse:
        attempt = 0
        request_headers = dict(headers or {})

        while True:
            await self._wait_for_rate_limit()
            try:
                response = await self._transport(
                    "GET", url, request_headers, self._request_timeout_seconds
                )
            except (requests.RequestException, OSError) as error:
                if attempt >= self._max_retries:
                    raise TransportError(f"network error: {error}") from error
                attempt += 1
                LOGGER.debug("retrying %s after network error (attempt %d)", _redact(url), attempt)
                await self._sleep(self._backoff_seconds * attempt)
                continue

            if 200 <= response.status_code < 300:
                return response

            if response.status_code in RETRYABLE_STATUS_CODES and attempt < self._max_retries:
                attempt += 1
                LOGGER.debug(
                    "retrying %s after HTTP %d (attempt %d)",
                    _redact(url),
                    response.status_code,
                    attempt,
                )
                await self._sleep(self._backoff_seconds * attempt)
                continue

            raise TransportError(
                f"HTTP {response.status_code}", status_code=response.status_code
            )

    async def request_json(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> object:
        response = await self._request(url, headers)
        try:
            return json.loads(response.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise MalformedPayloadError(f"response body is not JSON: {error}") from error

    async def request_text(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> str:
        response = await self._request(url, headers)
        return response.body.decode("utf-8", errors="replace")


def _redact(url: str) -> str:
    # api keys travel in the query string
    return url.split("?", 1)[0]
