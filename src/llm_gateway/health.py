# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/health.py

import asyncio
import contextlib
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .config import HealthSettings
from .core.constants import HEALTH_CHECK_MAX_TOKENS, HEALTH_CHECK_TEMPERATURE
from .core.errors import GatewayTimeoutError, is_rate_limit_error, is_transient_error
from .core.types import HealthRecord, HealthStatus
from .manager import ProviderManager
from .providers.provider_interface import Clock, Sleep
from .stream import ChatStream
from .utils.text import count_words, extract_response_text

lib_logger = logging.getLogger("llm_gateway")

HealthCallback = Callable[[str, HealthRecord], Union[None, Awaitable[None]]]

# Open-ended prompts that any working chat model answers with a sentence or more
PROMPTS = [
    "If you had to choose, what's the worst way to eat a banana?",
    "How many pancakes would it take to build a ladder to the moon?",
    "What would happen if you tried to fry ice?",
    "If colors could scream, which one would be the loudest?",
    "How would you describe a smartphone to a medieval knight?",
    "What's the most useless superpower you can think of?",
    "How many chickens would it take to win a fight against a lion?",
    "How would you survive a zombie apocalypse using only office supplies?",
    "What's the weirdest way to greet someone?",
    "How would you explain the internet to a caveman?",
    "What would happen if gravity stopped working for 5 seconds?",
    "If you could combine any two animals, what would be the most ridiculous combo?",
    "What's the worst possible name for a pet goldfish?",
    "How would you convince a cat to take a bath?",
    "What would happen if you tried to microwave a microwave?",
    "How would you survive in the wilderness with only a roll of duct tape?",
    "What's the most confusing way to give directions?",
    "What's the worst possible pizza topping combination?",
    "How would you teach a robot to dance using only metaphors?",
    "How would you describe the taste of water to an alien?",
    "If you could only eat food that's the color blue, what would your diet consist of?",
]


class HealthChecker:
    """
    Periodically probes every listed model through the provider manager.

    Models are tested one at a time with `model_delay` seconds between them,
    so a full cycle never bursts upstream rate limits. Results land in an
    in-memory map keyed by model id.
    """

    def __init__(
        self,
        manager: ProviderManager,
        settings: Optional[HealthSettings] = None,
        *,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.manager = manager
        self.settings = settings or HealthSettings()
        self.clock = clock
        self.sleep = sleep
        self._rng = rng or random.Random()
        self._records: Dict[str, HealthRecord] = {}
        self._is_checking = False
        self._task: Optional[asyncio.Task] = None
        self.last_cycle_at: Optional[float] = None

    @property
    def is_checking(self) -> bool:
        return self._is_checking

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_random_prompt(self) -> str:
        return self._rng.choice(PROMPTS)

    def get_status(self) -> List[HealthRecord]:
        return list(self._records.values())

    def get_record(self, model_id: str) -> Optional[HealthRecord]:
        return self._records.get(model_id)

    def validate_response(self, text: str) -> bool:
        return count_words(text.strip()) >= self.settings.min_words

    # =========================================================================
    # Probing
    # =========================================================================

    async def _probe(self, model_id: str, prompt: str) -> str:
        result = await self.manager.chat(
            model_id,
            [{"role": "user", "content": prompt}],
            temperature=HEALTH_CHECK_TEMPERATURE,
            max_tokens=HEALTH_CHECK_MAX_TOKENS,
        )
        if isinstance(result, ChatStream):
            parts: List[str] = []
            async with result:
                async for chunk in result:
                    parts.append(extract_response_text(chunk))
            return "".join(parts)
        return extract_response_text(result)

    def _write(self, model_id: str, **fields: Any) -> HealthRecord:
        record = HealthRecord(model_id=model_id, last_checked_at=self.clock(), **fields)
        self._records[model_id] = record
        return record

    async def test_model(self, model_id: str, attempt: int = 1) -> HealthRecord:
        """
        Send one probe prompt to `model_id` and record the outcome.

        Short answers and transient failures are retried up to max_retries
        attempts. The final status is operational, unknown (timeout),
        limited (rate limited) or error.
        """
        max_retries = self.settings.max_retries
        prompt = self.get_random_prompt()
        started = self.clock()

        try:
            text = await asyncio.wait_for(
                self._probe(model_id, prompt), timeout=self.settings.probe_timeout
            )
        except Exception as e:
            timed_out = isinstance(e, (asyncio.TimeoutError, GatewayTimeoutError))
            retryable = timed_out or is_rate_limit_error(e) or is_transient_error(e)
            if retryable and attempt < max_retries:
                lib_logger.debug(
                    f"Model {model_id} error (attempt {attempt}/{max_retries}), retrying: {e}",
                    extra={"model": model_id, "event": "health_retry"},
                )
                await self.sleep(self.settings.retry_delay)
                return await self.test_model(model_id, attempt + 1)

            if timed_out:
                status = HealthStatus.UNKNOWN
            elif is_rate_limit_error(e):
                status = HealthStatus.LIMITED
            else:
                status = HealthStatus.ERROR
            message = str(e) or type(e).__name__
            lib_logger.debug(f"Model {model_id} failed after {attempt} attempts: {message}")
            return self._write(
                model_id, status=status, last_error=message, attempts=attempt
            )

        latency_ms = int((self.clock() - started) * 1000)

        if not self.validate_response(text):
            lib_logger.debug(
                f"Model {model_id} invalid response (attempt {attempt}/{max_retries}): {text!r}"
            )
            if attempt < max_retries:
                await self.sleep(self.settings.retry_delay)
                return await self.test_model(model_id, attempt + 1)
            return self._write(
                model_id,
                status=HealthStatus.ERROR,
                latency_ms=latency_ms,
                last_error=f"Response invalid: {text!r}",
                attempts=attempt,
            )

        lib_logger.debug(f"Model {model_id} healthy in {latency_ms}ms (attempt {attempt})")
        return self._write(
            model_id,
            status=HealthStatus.OPERATIONAL,
            latency_ms=latency_ms,
            attempts=attempt,
        )

    # =========================================================================
    # Cycles
    # =========================================================================

    async def check_all_models(self, callback: Optional[HealthCallback] = None) -> List[HealthRecord]:
        if self._is_checking:
            lib_logger.debug("Health check already in progress, skipping")
            return self.get_status()

        self._is_checking = True
        try:
            models = await self.manager.list_available_models()
            lib_logger.info(f"Starting health check of {len(models)} models")

            for model in models:
                await self.sleep(self.settings.model_delay)
                try:
                    record = await self.test_model(model.id)
                except Exception as e:
                    lib_logger.error(f"Health check crashed for {model.id}: {e}", exc_info=True)
                    record = self._write(
                        model.id, status=HealthStatus.ERROR, last_error=str(e)
                    )

                if callback is not None:
                    try:
                        outcome = callback(model.id, record)
                        if asyncio.iscoroutine(outcome):
                            await outcome
                    except Exception as e:
                        lib_logger.warning(f"Health check callback failed for {model.id}: {e}")

            self.last_cycle_at = self.clock()
            operational = sum(
                1 for r in self._records.values() if r.status == HealthStatus.OPERATIONAL
            )
            lib_logger.info(
                f"Health check complete: {operational}/{len(self._records)} models operational"
            )
        finally:
            self._is_checking = False

        return self.get_status()

    async def _run(self, callback: Optional[HealthCallback]) -> None:
        while True:
            try:
                await self.check_all_models(callback)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                lib_logger.error(f"Health check cycle failed: {e}", exc_info=True)
            await self.sleep(self.settings.interval)

    def start_health_checks(self, callback: Optional[HealthCallback] = None) -> asyncio.Task:
        """Run a cycle now, then every `interval` seconds, in a background task."""
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._run(callback))
        lib_logger.info(
            f"Health checks scheduled every {self.settings.interval:.0f}s"
        )
        return self._task

    async def stop_health_checks(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        lib_logger.info("Health checks stopped")
