import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Union

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from llm_gateway.config import ProviderSettings  # noqa: E402
from llm_gateway.core.types import ModelDescriptor  # noqa: E402
from llm_gateway.providers import ProviderAdapter  # noqa: E402
from llm_gateway.stream import ChatStream  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records requested delays and moves the fake clock instead of waiting."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        self.clock.advance(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


class ScriptedAdapter(ProviderAdapter):
    """
    In-memory adapter for routing tests.

    Serves the model ids it is given verbatim (no prefixing), so several
    adapters can claim the same model. Each chat() call pops the next
    scripted outcome: an exception is raised, a string becomes the reply.
    """

    def __init__(
        self,
        name: str,
        models: Sequence[str],
        outcomes: Iterable[Union[str, BaseException]] = (),
        *,
        default: Union[str, BaseException] = "hello from the adapter",
        api_keys: Sequence[str] = (),
        requires_api_key: bool = False,
        supports_streaming: bool = True,
        min_request_interval: float = 0.0,
        **kwargs,
    ):
        self.name = name
        self.requires_api_key = requires_api_key
        self.supports_streaming = supports_streaming
        super().__init__(
            ProviderSettings(
                name=name,
                api_keys=tuple(api_keys),
                min_request_interval=min_request_interval,
            ),
            **kwargs,
        )
        self.model_ids = list(models)
        self.outcomes = list(outcomes)
        self.default = default
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def fetch_models(self) -> List[ModelDescriptor]:
        return [
            ModelDescriptor(id=m, display_name=m, context_length=8192, owned_by=self.name)
            for m in self.model_ids
        ]

    async def can_handle(self, model_id: str) -> bool:
        return any(m.id == model_id for m in await self.get_models())

    async def chat(self, messages, **options):
        self.calls.append({"at": self.clock(), **options})
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        if options.get("stream"):
            return _word_stream(outcome, options["model"], self.name)
        return {
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "created": 1700000000,
            "model": options["model"],
            "provider": self.name,
            "choices": [
                {"index": 0, "message": {"role": "assistant", "content": outcome}, "finish_reason": "stop"}
            ],
            "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
        }

    async def aclose(self) -> None:
        self.closed = True


def _word_stream(text: str, model: str, provider: str) -> ChatStream:
    async def chunks():
        for word in text.split(" "):
            yield {
                "id": "chatcmpl-test",
                "object": "chat.completion.chunk",
                "created": 1700000000,
                "model": model,
                "choices": [{"index": 0, "delta": {"content": word + " "}, "finish_reason": None}],
            }

    return ChatStream(chunks(), model=model, provider=provider)


@pytest.fixture
def make_scripted(clock, sleep):
    def factory(name, models, outcomes=(), **kwargs):
        return ScriptedAdapter(name, models, outcomes, clock=clock, sleep=sleep, **kwargs)

    return factory
