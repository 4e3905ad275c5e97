"""Rate-limited, cached, retrying client for the hosted chat-completion service."""

import asyncio
import hashlib
import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from pydantic import ValidationError

from folio.adapters.llm.schemas import CompletionResult
from folio.config import Settings, settings as default_settings
from folio.core.cache import TTLCache
from folio.core.rate_limit import RateLimiter
from folio.domain.errors import (
    CompletionError,
    PermanentServiceError,
    TransientServiceError,
)
from folio.prompts.templates import CONNECTION_CHECK

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS = "/chat/completions"

# The request went out but no usable response came back. Errors raised before
# sending (bad URL scheme, malformed request) are not retried.
_RETRYABLE_TRANSPORT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def fingerprint(endpoint: str, payload: dict[str, Any]) -> str:
    """Deterministic cache key for a request."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(f"{endpoint}\n{canonical}".encode("utf-8")).hexdigest()


class RateLimitedCompletionClient:
    """
    Owns all traffic to the completion service.

    Every call goes through three layers, in order:
      1. Response cache: a fresh entry for the same (endpoint, payload)
         is returned without touching the network or the rate limiter.
      2. Rate limiter: at most ``rate_limit_max_requests`` calls per minute;
         excess calls wait for the window to roll over.
      3. Retry with backoff: 429, 5xx and transport failures are retried
         up to ``retry_max_attempts`` times, the delay growing by
         ``retry_backoff_factor`` before each retry.

    Clock, sleeper and HTTP transport are injectable for tests.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        cfg = settings or default_settings
        self._model = cfg.completion_model
        self._temperature = cfg.completion_temperature
        self._max_tokens = cfg.completion_max_tokens
        self._cache_enabled = cfg.completion_cache_enabled
        self._max_retries = cfg.retry_max_attempts
        self._backoff_factor = cfg.retry_backoff_factor
        self._base_delay = cfg.retry_base_delay
        self._sleep = sleep

        self._cache: TTLCache[CompletionResult] = TTLCache(
            cfg.completion_cache_ttl, clock=clock, name="completion-cache"
        )
        self._rate_limiter = RateLimiter(
            cfg.rate_limit_max_requests, clock=clock, sleep=sleep
        )
        self._http = httpx.AsyncClient(
            base_url=cfg.completion_base_url.rstrip("/"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {cfg.completion_api_key.get_secret_value()}",
            },
            timeout=cfg.completion_timeout,
            transport=transport,
        )

    @property
    def cache(self) -> TTLCache[CompletionResult]:
        return self._cache

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    async def complete(
        self,
        payload: dict[str, Any],
        endpoint: str = CHAT_COMPLETIONS,
        *,
        use_cache: bool = True,
    ) -> CompletionResult:
        """Send ``payload`` to ``endpoint`` and return the typed response."""
        caching = self._cache_enabled and use_cache
        key = fingerprint(endpoint, payload)
        if caching:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Completion cache hit: %s", key[:12])
                return cached

        await self._rate_limiter.acquire()

        attempt = 0
        delay = self._base_delay
        while True:
            try:
                result = await self._send(endpoint, payload)
                break
            except httpx.HTTPError as exc:
                if not self._should_retry(exc):
                    raise self._handle_error(exc, PermanentServiceError) from exc
                if attempt >= self._max_retries:
                    raise self._handle_error(exc, TransientServiceError) from exc
                attempt += 1
                delay *= self._backoff_factor
                logger.warning(
                    "Completion request failed (%s); retry %d/%d in %.2fs",
                    _describe(exc),
                    attempt,
                    self._max_retries,
                    delay,
                )
                await self._sleep(delay)

        if caching:
            self._cache.set(key, result)
        return result

    async def create_chat_completion(
        self,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **extra: Any,
    ) -> CompletionResult:
        """Build a chat payload from configured defaults and send it."""
        payload: dict[str, Any] = {
            "model": model or self._model,
            "messages": messages,
            "temperature": self._temperature if temperature is None else temperature,
            "max_tokens": self._max_tokens if max_tokens is None else max_tokens,
            **extra,
        }
        return await self.complete(payload)

    async def validate_connection(self) -> bool:
        """Send a tiny prompt and report whether the service answered."""
        payload = {
            "model": self._model,
            "messages": CONNECTION_CHECK.messages(),
            "temperature": CONNECTION_CHECK.temperature,
            "max_tokens": CONNECTION_CHECK.max_tokens,
        }
        try:
            await self.complete(payload, use_cache=False)
        except CompletionError as exc:
            logger.error("Completion service connection check failed: %s", exc)
            return False
        return True

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "RateLimitedCompletionClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ── Internals ──────────────────────────────────

    async def _send(self, endpoint: str, payload: dict[str, Any]) -> CompletionResult:
        logger.info(
            "Completion request: endpoint=%s, model=%s", endpoint, payload.get("model")
        )
        resp = await self._http.post(endpoint, json=payload)
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError as exc:
            raise PermanentServiceError(
                "Completion service returned a non-JSON body",
                status=resp.status_code,
                body=resp.text[:500],
                cause=exc,
            ) from exc
        try:
            result = CompletionResult.model_validate(data)
        except ValidationError as exc:
            raise PermanentServiceError(
                "Completion service returned an unexpected response shape",
                status=resp.status_code,
                body=data,
                cause=exc,
            ) from exc
        logger.info("Completion response: %d choice(s)", len(result.choices))
        return result

    @staticmethod
    def _should_retry(exc: httpx.HTTPError) -> bool:
        """429 and 5xx responses, and requests sent without getting a response."""
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            return status == 429 or 500 <= status < 600
        return isinstance(exc, _RETRYABLE_TRANSPORT_ERRORS)

    @staticmethod
    def _handle_error(
        exc: httpx.HTTPError, error_cls: type[CompletionError]
    ) -> CompletionError:
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            body = _decode_body(exc.response)
            return error_cls(
                f"Completion API error ({status}): {_upstream_message(body)}",
                status=status,
                body=body,
                cause=exc,
            )
        if isinstance(exc, httpx.TransportError):
            return error_cls(
                f"Completion API request timeout or network error: {_describe(exc)}",
                cause=exc,
            )
        return error_cls(f"Completion API client error: {_describe(exc)}", cause=exc)


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _upstream_message(body: Any) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return "Unknown error"


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
