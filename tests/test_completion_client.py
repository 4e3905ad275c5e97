"""Tests for the rate-limited, cached, retrying completion client."""

import httpx
import pytest

from folio.adapters.llm.client import RateLimitedCompletionClient, fingerprint
from folio.domain.errors import (
    EmptyCompletionError,
    PermanentServiceError,
    TransientServiceError,
)
from tests.conftest import FakeClock, FakeCompletionService, make_settings

PAYLOAD = {
    "model": "gpt-4o-mini",
    "messages": [{"role": "user", "content": "hello"}],
    "temperature": 0.7,
    "max_tokens": 50,
}


def build_client(service: FakeCompletionService, clock: FakeClock, **overrides):
    return RateLimitedCompletionClient(
        make_settings(**overrides),
        clock=clock,
        sleep=clock.sleep,
        transport=service.transport,
    )


# ── Success & caching ──────────────────────────────


@pytest.mark.asyncio
async def test_complete_returns_typed_result(client, service):
    service.reply("Hi there")

    result = await client.complete(PAYLOAD)

    assert result.text() == "Hi there"
    assert result.model == "gpt-4o-mini"
    assert service.calls == 1
    request = service.requests[0]
    assert request.url.path == "/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    assert service.payload() == PAYLOAD


@pytest.mark.asyncio
async def test_cache_hit_skips_transport_and_rate_limit(client, service):
    service.reply("cached answer")

    first = await client.complete(PAYLOAD)
    second = await client.complete(dict(PAYLOAD))

    assert second == first
    assert service.calls == 1
    assert client.rate_limiter.state.request_count == 1


@pytest.mark.asyncio
async def test_cache_distinguishes_endpoint(client, service):
    service.reply("answer")

    await client.complete(PAYLOAD)
    await client.complete(PAYLOAD, endpoint="/other/completions")

    assert service.calls == 2
    assert service.requests[1].url.path == "/v1/other/completions"


@pytest.mark.asyncio
async def test_cache_entry_expires_after_ttl(client, service, clock):
    service.reply("answer")

    await client.complete(PAYLOAD)
    clock.advance(301)
    await client.complete(PAYLOAD)

    assert service.calls == 2


@pytest.mark.asyncio
async def test_cache_can_be_disabled(clock):
    service = FakeCompletionService(clock).reply("answer")
    async with build_client(service, clock, completion_cache_enabled=False) as client:
        await client.complete(PAYLOAD)
        await client.complete(PAYLOAD)

    assert service.calls == 2


def test_fingerprint_ignores_key_order():
    reordered = dict(reversed(list(PAYLOAD.items())))
    assert fingerprint("/chat/completions", PAYLOAD) == fingerprint(
        "/chat/completions", reordered
    )
    assert fingerprint("/chat/completions", PAYLOAD) != fingerprint("/x", PAYLOAD)


# ── Retry & backoff ────────────────────────────────


@pytest.mark.asyncio
async def test_persistent_server_error_exhausts_retries(client, service, clock):
    service.fail(500, "server exploded")

    with pytest.raises(TransientServiceError) as excinfo:
        await client.complete(PAYLOAD)

    assert service.calls == 3 + 1
    assert excinfo.value.status == 500
    assert excinfo.value.body == {"error": {"message": "server exploded"}}
    assert "server exploded" in str(excinfo.value)
    assert clock.sleeps == pytest.approx([1.5, 2.25, 3.375])


@pytest.mark.asyncio
async def test_rate_limited_then_success(client, service):
    service.fail(429, "slow down").reply("finally")

    result = await client.complete(PAYLOAD)

    assert result.text() == "finally"
    assert service.calls == 2


@pytest.mark.asyncio
async def test_transport_failure_is_retried(client, service):
    service.disconnect().disconnect().reply("reconnected")

    result = await client.complete(PAYLOAD)

    assert result.text() == "reconnected"
    assert service.calls == 3


@pytest.mark.asyncio
async def test_transport_failure_escalates_without_status(clock):
    service = FakeCompletionService(clock).disconnect()
    async with build_client(service, clock, retry_max_attempts=1) as client:
        with pytest.raises(TransientServiceError) as excinfo:
            await client.complete(PAYLOAD)

    assert service.calls == 2
    assert excinfo.value.status is None
    assert excinfo.value.cause is not None


@pytest.mark.asyncio
async def test_timeouts_and_dropped_connections_are_retried(client, service):
    service.raise_error(httpx.ReadTimeout).raise_error(
        httpx.RemoteProtocolError, "server disconnected"
    ).reply("made it")

    result = await client.complete(PAYLOAD)

    assert result.text() == "made it"
    assert service.calls == 3


@pytest.mark.parametrize(
    "error_cls", [httpx.LocalProtocolError, httpx.UnsupportedProtocol]
)
@pytest.mark.asyncio
async def test_request_that_never_went_out_is_not_retried(client, service, clock, error_cls):
    service.raise_error(error_cls, "cannot send")

    with pytest.raises(PermanentServiceError) as excinfo:
        await client.complete(PAYLOAD)

    assert service.calls == 1
    assert clock.sleeps == []
    assert excinfo.value.status is None
    assert isinstance(excinfo.value.cause, error_cls)


@pytest.mark.asyncio
async def test_client_error_is_not_retried(client, service, clock):
    service.fail(400, "Invalid model")

    with pytest.raises(PermanentServiceError) as excinfo:
        await client.complete(PAYLOAD)

    assert service.calls == 1
    assert clock.sleeps == []
    assert excinfo.value.status == 400
    assert "Invalid model" in str(excinfo.value)


@pytest.mark.asyncio
async def test_failures_are_not_cached(client, service):
    service.fail(400).reply("recovered")

    with pytest.raises(PermanentServiceError):
        await client.complete(PAYLOAD)
    result = await client.complete(PAYLOAD)

    assert result.text() == "recovered"
    assert service.calls == 2


@pytest.mark.asyncio
async def test_non_json_body_is_permanent_error(client, service):
    service.reply_raw(200, "<html>gateway</html>")

    with pytest.raises(PermanentServiceError):
        await client.complete(PAYLOAD)


@pytest.mark.asyncio
async def test_no_choices_raises_on_text(client, service):
    service.reply_json(200, {"id": "x", "choices": []})

    result = await client.complete(PAYLOAD)

    with pytest.raises(EmptyCompletionError):
        result.text()


# ── Rate limiting ──────────────────────────────────


@pytest.mark.asyncio
async def test_request_over_budget_waits_for_window(clock):
    service = FakeCompletionService(clock).reply("ok")
    async with build_client(service, clock, rate_limit_max_requests=2) as client:
        for i in range(3):
            await client.complete({**PAYLOAD, "max_tokens": i + 1})

    assert service.calls == 3
    assert service.request_times[:2] == [1000.0, 1000.0]
    assert service.request_times[2] >= 1060.0
    assert clock.sleeps == [60.0]


# ── Convenience API ────────────────────────────────


@pytest.mark.asyncio
async def test_create_chat_completion_applies_defaults(client, service):
    service.reply("ok")
    messages = [{"role": "user", "content": "hi"}]

    await client.create_chat_completion(messages, max_tokens=12)

    assert service.payload() == {
        "model": "gpt-4o-mini",
        "messages": messages,
        "temperature": 0.7,
        "max_tokens": 12,
    }


@pytest.mark.asyncio
async def test_validate_connection(client, service):
    service.reply("ok")
    assert await client.validate_connection() is True
    assert await client.validate_connection() is True
    # Connection checks always reach the service
    assert service.calls == 2


@pytest.mark.asyncio
async def test_validate_connection_reports_failure(clock):
    service = FakeCompletionService(clock).fail(401, "Incorrect API key")
    async with build_client(service, clock) as client:
        assert await client.validate_connection() is False
