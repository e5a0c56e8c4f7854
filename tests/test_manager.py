import asyncio

import httpx
import pytest
import respx
from conftest import ScriptedAdapter

from llm_gateway.config import GatewaySettings, ProviderSettings
from llm_gateway.core.errors import (
    InvalidRequestError,
    NoKeyAvailableError,
    NoProviderAvailableError,
    QuotaExceededError,
    RateLimitedError,
    UnauthorizedError,
    UpstreamError,
)
from llm_gateway.core.types import KeyErrorKind
from llm_gateway.manager import ProviderManager
from llm_gateway.providers import GroqProvider
from llm_gateway.stream import ChatStream

MESSAGES = [{"role": "user", "content": "hello"}]
SHARED = "shared/model"


def _manager(adapters, clock, sleep, **settings):
    return ProviderManager(adapters, GatewaySettings(**settings), clock=clock, sleep=sleep)


@pytest.mark.asyncio
async def test_falls_back_across_three_adapters(make_scripted, clock, sleep):
    first = make_scripted("first", [SHARED], [RateLimitedError("slow down", provider="first", status_code=429)])
    second = make_scripted("second", [SHARED], [UpstreamError("boom", provider="second", status_code=500)])
    third = make_scripted("third", [SHARED], default="served by third")
    manager = _manager([first, second, third], clock, sleep)

    response = await manager.chat(SHARED, MESSAGES)

    assert response["provider"] == "third"
    assert len(first.calls) == len(second.calls) == len(third.calls) == 1
    assert sleep.calls == []

    # Rate limiting benches the whole provider; other failures do not
    assert not manager.is_provider_available("first")
    assert manager.is_provider_available("second")

    response = await manager.chat(SHARED, MESSAGES)
    assert response["provider"] == "second"
    assert len(first.calls) == 1

    clock.advance(3600)
    assert manager.is_provider_available("first")
    response = await manager.chat(SHARED, MESSAGES)
    assert response["provider"] == "first"


@pytest.mark.asyncio
async def test_keyless_alpha_and_invalid_key_beta(make_scripted, clock, sleep):
    alpha = make_scripted("alpha", ["alpha/only", SHARED], default="alpha answers")
    beta = make_scripted(
        "beta",
        ["beta/only", SHARED],
        default=UnauthorizedError("beta HTTP 401: invalid key", provider="beta", status_code=401),
        api_keys=("bad-key-00000000",),
        requires_api_key=True,
    )

    manager = _manager([beta, alpha], clock, sleep)

    with pytest.raises(UnauthorizedError):
        await manager.chat("beta/only", MESSAGES)
    # A permanent failure is not retried
    assert len(beta.calls) == 1
    assert sleep.calls == []

    response = await manager.chat(SHARED, MESSAGES)
    assert response["provider"] == "alpha"
    assert response["choices"][0]["message"]["content"] == "alpha answers"
    assert len(beta.calls) == 2

    manager = _manager([alpha, beta], clock, sleep)
    response = await manager.chat(SHARED, MESSAGES)
    assert response["provider"] == "alpha"
    assert len(beta.calls) == 2


@pytest.mark.asyncio
async def test_unknown_model_raises_no_provider(make_scripted, clock, sleep):
    manager = _manager([make_scripted("only", ["only/model"])], clock, sleep)

    with pytest.raises(NoProviderAvailableError) as exc_info:
        await manager.chat("missing/model", MESSAGES)
    assert exc_info.value.transient is False


@pytest.mark.asyncio
async def test_invalid_request_never_reaches_adapters(make_scripted, clock, sleep):
    adapter = make_scripted("only", ["only/model"])
    manager = _manager([adapter], clock, sleep)

    with pytest.raises(InvalidRequestError):
        await manager.chat("only/model", [{"role": "user"}])
    with pytest.raises(InvalidRequestError):
        await manager.chat("only/model", MESSAGES, temperature=5)
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_transient_failures_retry_whole_passes(make_scripted, clock, sleep):
    adapter = make_scripted(
        "flaky",
        [SHARED],
        [
            UpstreamError("bad gateway", provider="flaky", status_code=502),
            UpstreamError("bad gateway", provider="flaky", status_code=502),
        ],
        default="third time lucky",
    )
    manager = _manager([adapter], clock, sleep, retry_delay=1.5)

    response = await manager.chat(SHARED, MESSAGES)

    assert response["choices"][0]["message"]["content"] == "third time lucky"
    assert len(adapter.calls) == 3
    assert sleep.calls == [1.5, 1.5]


@pytest.mark.asyncio
async def test_retry_budget_exhaustion_raises_last_error(make_scripted, clock, sleep):
    adapter = make_scripted(
        "down",
        [SHARED],
        default=UpstreamError("service unavailable", provider="down", status_code=503),
    )
    manager = _manager([adapter], clock, sleep, retry_attempts=2)

    with pytest.raises(UpstreamError) as exc_info:
        await manager.chat(SHARED, MESSAGES)

    assert exc_info.value.status_code == 503
    assert len(adapter.calls) == 2
    assert sleep.calls == [1.0]
    assert manager.get_provider_status()["down"]["last_error"] == "service unavailable"


@pytest.mark.asyncio
async def test_mixed_pass_with_permanent_and_transient_failures_is_retried(make_scripted, clock, sleep):
    quota = make_scripted(
        "quota",
        [SHARED],
        default=QuotaExceededError("payment required", provider="quota", status_code=402),
    )
    flaky = make_scripted(
        "flaky", [SHARED], [UpstreamError("oops", provider="flaky", status_code=500)], default="ok now"
    )
    manager = _manager([quota, flaky], clock, sleep)

    response = await manager.chat(SHARED, MESSAGES)

    assert response["provider"] == "flaky"
    assert sleep.calls == [1.0]
    assert len(quota.calls) == 2


@pytest.mark.asyncio
async def test_rate_limited_only_provider_surfaces_rate_limit(make_scripted, clock, sleep):
    adapter = make_scripted(
        "busy", [SHARED], default=RateLimitedError("rate limit reached", provider="busy", status_code=429)
    )
    manager = _manager([adapter], clock, sleep)

    with pytest.raises(RateLimitedError):
        await manager.chat(SHARED, MESSAGES)

    # Second pass finds the provider cooling down and stops
    assert len(adapter.calls) == 1
    assert sleep.calls == [1.0]


@pytest.mark.asyncio
async def test_transient_no_key_error_benches_provider(make_scripted, clock, sleep):
    adapter = make_scripted(
        "keys",
        [SHARED],
        [NoKeyAvailableError("all keys cooling down", provider="keys", transient=True)],
    )
    backup = make_scripted("backup", [SHARED], default="backup reply")
    manager = _manager([adapter, backup], clock, sleep)

    response = await manager.chat(SHARED, MESSAGES)

    assert response["provider"] == "backup"
    assert not manager.is_provider_available("keys")


@pytest.mark.asyncio
async def test_all_providers_cooling_without_prior_error(make_scripted, clock, sleep):
    adapter = make_scripted("cool", [SHARED])
    manager = _manager([adapter], clock, sleep)
    manager.disable_provider("cool", RuntimeError("manual"))

    with pytest.raises(NoProviderAvailableError) as exc_info:
        await manager.chat(SHARED, MESSAGES)

    assert exc_info.value.transient is True
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_streaming_skips_adapters_without_stream_support(make_scripted, clock, sleep):
    batch_only = make_scripted("batch", [SHARED], supports_streaming=False)
    streamer = make_scripted("streamer", [SHARED], default="streamed words here")
    manager = _manager([batch_only, streamer], clock, sleep)

    stream = await manager.chat(SHARED, MESSAGES, stream=True)

    assert isinstance(stream, ChatStream)
    async with stream:
        text = "".join([c["choices"][0]["delta"]["content"] async for c in stream])
    assert text.split() == ["streamed", "words", "here"]
    assert batch_only.calls == []


@pytest.mark.asyncio
async def test_model_option_is_not_duplicated(make_scripted, clock, sleep):
    adapter = make_scripted("only", [SHARED])
    manager = _manager([adapter], clock, sleep)

    await manager.chat(SHARED, MESSAGES, model="ignored", temperature=0.2)

    assert adapter.calls[0]["model"] == SHARED
    assert adapter.calls[0]["temperature"] == 0.2


@pytest.mark.asyncio
async def test_min_request_interval_spaces_requests(make_scripted, clock, sleep):
    adapter = make_scripted("paced", [SHARED], min_request_interval=2.0)
    manager = _manager([adapter], clock, sleep)

    await manager.chat(SHARED, MESSAGES)
    await manager.chat(SHARED, MESSAGES)
    assert sleep.calls == [2.0]

    clock.advance(10)
    await manager.chat(SHARED, MESSAGES)
    assert sleep.calls == [2.0]


@pytest.mark.asyncio
async def test_min_request_interval_holds_under_concurrency(make_scripted, clock, sleep):
    adapter = make_scripted("paced", [SHARED], min_request_interval=2.0)
    manager = _manager([adapter], clock, sleep)

    await asyncio.gather(*(manager.chat(SHARED, MESSAGES) for _ in range(4)))

    times = sorted(call["at"] for call in adapter.calls)
    assert len(times) == 4
    assert all(later - earlier >= 2.0 for earlier, later in zip(times, times[1:]))


@pytest.mark.asyncio
async def test_concurrent_calls_share_key_cooldown(clock, sleep):
    adapter = GroqProvider(
        ProviderSettings(name="groq", api_keys=("gsk-first-key-1111", "gsk-second-key-2222")),
        clock=clock,
        sleep=sleep,
    )
    manager = ProviderManager([adapter], GatewaySettings(), clock=clock, sleep=sleep)
    first_key_hits = []

    def responder(request: httpx.Request) -> httpx.Response:
        if request.headers["authorization"] == "Bearer gsk-first-key-1111":
            first_key_hits.append(request)
            return httpx.Response(429, json={"error": {"message": "Rate limit reached"}})
        return httpx.Response(
            200, json={"choices": [{"message": {"role": "assistant", "content": "ok"}}]}
        )

    with respx.mock() as mock_router:
        mock_router.get("https://api.groq.com/openai/v1/models").mock(
            return_value=httpx.Response(200, json={"data": [{"id": "llama-3.3-70b-versatile"}]})
        )
        mock_router.post("https://api.groq.com/openai/v1/chat/completions").mock(side_effect=responder)

        results = await asyncio.gather(
            *(manager.chat("groq/llama-3.3-70b-versatile", MESSAGES) for _ in range(4))
        )
        hits_after_burst = len(first_key_hits)

        await manager.chat("groq/llama-3.3-70b-versatile", MESSAGES)
        await manager.aclose()

    assert all(r["choices"][0]["message"]["content"] == "ok" for r in results)
    assert 1 <= hits_after_burst <= 4
    # The cooling key is skipped by later calls
    assert len(first_key_hits) == hits_after_burst
    first, second = adapter.key_rotator.keys
    assert first.error_kind == KeyErrorKind.RATE_LIMIT
    assert second.error_kind == KeyErrorKind.NONE
    assert manager.is_provider_available("groq")


@pytest.mark.asyncio
async def test_revoked_key_falls_through_to_healthy_key(clock, sleep):
    adapter = GroqProvider(
        ProviderSettings(name="groq", api_keys=("gsk-revoked-aaaa", "gsk-healthy-bbbb")),
        clock=clock,
        sleep=sleep,
    )
    manager = ProviderManager([adapter], GatewaySettings(), clock=clock, sleep=sleep)

    def responder(request: httpx.Request) -> httpx.Response:
        if request.headers["authorization"] == "Bearer gsk-revoked-aaaa":
            return httpx.Response(401, json={"error": {"message": "Invalid API Key"}})
        return httpx.Response(
            200, json={"choices": [{"message": {"role": "assistant", "content": "ok"}}]}
        )

    with respx.mock() as mock_router:
        mock_router.get("https://api.groq.com/openai/v1/models").mock(
            return_value=httpx.Response(200, json={"data": [{"id": "llama-3.3-70b-versatile"}]})
        )
        route = mock_router.post("https://api.groq.com/openai/v1/chat/completions").mock(
            side_effect=responder
        )
        response = await manager.chat("groq/llama-3.3-70b-versatile", MESSAGES)
        await manager.aclose()

    assert response["choices"][0]["message"]["content"] == "ok"
    assert route.call_count == 2
    assert sleep.calls == []
    assert manager.get_provider_status()["groq"]["last_error"] is None


@pytest.mark.asyncio
async def test_unexpected_adapter_exception_falls_through(make_scripted, clock, sleep):
    broken = make_scripted("broken", [SHARED], [RuntimeError("adapter bug")])
    backup = make_scripted("backup", [SHARED], default="backup answers")
    manager = _manager([broken, backup], clock, sleep)

    response = await manager.chat(SHARED, MESSAGES)

    assert response["provider"] == "backup"
    assert manager.is_provider_available("broken")
    assert manager.get_provider_status()["broken"]["last_error"] == "adapter bug"


@pytest.mark.asyncio
async def test_unexpected_adapter_exception_alone_is_not_retried(make_scripted, clock, sleep):
    broken = make_scripted("broken", [SHARED], default=RuntimeError("adapter bug"))
    manager = _manager([broken], clock, sleep)

    with pytest.raises(RuntimeError, match="adapter bug"):
        await manager.chat(SHARED, MESSAGES)

    assert len(broken.calls) == 1
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_list_available_models_merges_in_order(make_scripted, clock, sleep):
    class BrokenCatalog(ScriptedAdapter):
        async def get_models(self):
            raise RuntimeError("catalog exploded")

    first = make_scripted("first", ["a/one", SHARED])
    broken = BrokenCatalog("broken", ["b/two"], clock=clock, sleep=sleep)
    second = make_scripted("second", [SHARED, "c/three"])
    manager = _manager([first, broken, second], clock, sleep)

    models = await manager.list_available_models()

    assert [m.id for m in models] == ["a/one", SHARED, "c/three"]
    assert next(m for m in models if m.id == SHARED).owned_by == "first"


@pytest.mark.asyncio
async def test_reset_provider_clears_cooldown_and_keys(make_scripted, clock, sleep):
    adapter = make_scripted("keyed", [SHARED], api_keys=("key-aaaaaaaaaa",), requires_api_key=True)
    manager = _manager([adapter], clock, sleep)
    adapter.key_rotator.mark_auth_failure(adapter.key_rotator.keys[0])
    manager.disable_provider("keyed", RuntimeError("rate limit"))

    assert manager.reset_provider("keyed")
    assert manager.is_provider_available("keyed")
    assert adapter.key_rotator.keys[0].error_kind == KeyErrorKind.AUTH

    assert manager.reset_provider("keyed", reset_keys=True)
    assert adapter.key_rotator.keys[0].error_kind == KeyErrorKind.NONE
    assert manager.reset_provider("unknown") is False


@pytest.mark.asyncio
async def test_provider_status_reports_availability(make_scripted, clock, sleep):
    first = make_scripted("first", [SHARED], api_keys=("key-aaaaaaaaaa",), requires_api_key=True)
    second = make_scripted("second", [SHARED])
    manager = _manager([first, second], clock, sleep, provider_cooldown=120)
    manager.disable_provider("first", RuntimeError("rate limit reached"))

    status = manager.get_provider_status()

    assert list(status) == ["first", "second"]
    assert status["first"]["available"] is False
    assert status["first"]["disabled_until"] == clock.now + 120
    assert status["first"]["last_error"] == "rate limit reached"
    assert status["first"]["keys"][0]["key"] == "key-****aaaa"
    assert status["second"]["available"] is True
    assert status["second"]["disabled_until"] is None

    clock.advance(121)
    assert manager.get_provider_status()["first"]["available"] is True


@pytest.mark.asyncio
async def test_aclose_closes_adapters(make_scripted, clock, sleep):
    adapters = [make_scripted("first", [SHARED]), make_scripted("second", [SHARED])]

    async with _manager(adapters, clock, sleep):
        pass

    assert all(a.closed for a in adapters)
