# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/llm_gateway/providers/openai_compatible.py

import json
import logging
from typing import Any, AsyncGenerator, Dict, FrozenSet, Iterable, List, Optional

import httpx

from .provider_interface import ChatResult, ProviderAdapter
from ..core.constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_CONTEXT_LENGTH,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
)
from ..core.errors import (
    GatewayError,
    GatewayTimeoutError,
    NoKeyAvailableError,
    QuotaExceededError,
    RateLimitedError,
    UnauthorizedError,
    UpstreamError,
    classify_http_status,
    mask_credential,
    TRANSIENT_STATUS_CODES,
)
from ..core.types import ApiKeyState, ModelCapabilities, ModelDescriptor, ModelPricing
from ..normalize import normalize_chunk, normalize_response
from ..stream import ChatStream
from ..utils.sse import iter_sse_events
from ..validation import validate_chat_request

lib_logger = logging.getLogger("llm_gateway")

# Options consumed by the gateway itself, never forwarded upstream
INTERNAL_OPTIONS = frozenset({"model", "messages", "stream", "timeout", "extra_headers"})


def _error_status_from_payload(error_payload: Dict[str, Any]) -> int:
    """Best-effort HTTP status for an error object embedded in a 200 body or SSE event."""
    for key in ("status", "status_code", "code"):
        value = error_payload.get(key)
        if isinstance(value, int) and 400 <= value < 600:
            return value

    code = str(error_payload.get("code", "") or "").lower()
    err_type = str(error_payload.get("type", "") or "").lower()
    message = str(error_payload.get("message", "") or "").lower()
    text = " ".join([code, err_type, message])

    if any(token in text for token in ["rate_limit", "rate limit", "too many requests"]):
        return 429
    if any(token in text for token in ["insufficient_quota", "billing", "payment", "credits"]):
        return 402
    if any(token in text for token in ["invalid_api_key", "unauthorized", "authentication"]):
        return 401
    if "forbidden" in text:
        return 403
    if "timeout" in text or "timed out" in text:
        return 504
    return 500


def _error_message_from_body(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
        if body.get("detail"):
            return str(body["detail"])
    return fallback


class OpenAICompatibleAdapter(ProviderAdapter):
    """
    Adapter for upstreams speaking the OpenAI chat-completions dialect.

    Subclasses set `name` and `default_base_url` and usually override
    parse_model_entry() to filter and describe the catalog. The HTTP client
    may be shared across adapters; it is only closed here when this adapter
    created it.
    """

    default_base_url: str = ""
    chat_path: str = "/chat/completions"
    models_path: str = "/models"
    default_headers: Dict[str, str] = {}
    unsupported_params: FrozenSet[str] = frozenset()

    def __init__(
        self,
        settings=None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        **kwargs,
    ):
        super().__init__(settings, **kwargs)
        self.base_url = (self.settings.base_url or self.default_base_url).rstrip("/")
        self.request_timeout = request_timeout
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self._owns_client = http_client is None
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.request_timeout, connect=DEFAULT_CONNECT_TIMEOUT)
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # =========================================================================
    # Request building
    # =========================================================================

    def build_headers(
        self,
        key_state: Optional[ApiKeyState],
        stream: bool = False,
        extra_headers: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        headers.update(self.default_headers)
        if key_state is not None:
            headers["Authorization"] = f"Bearer {key_state.secret}"
        if isinstance(extra_headers, dict):
            headers.update({k: str(v) for k, v in extra_headers.items()})
        return headers

    def build_payload(
        self,
        base_model: str,
        messages: List[Dict[str, Any]],
        options: Dict[str, Any],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": base_model,
            "messages": messages,
            "stream": bool(options.get("stream")),
        }
        for key, value in options.items():
            if key in INTERNAL_OPTIONS or key in self.unsupported_params or value is None:
                continue
            payload[key] = value
        return payload

    # =========================================================================
    # Catalog
    # =========================================================================

    def parse_model_entry(self, entry: Dict[str, Any]) -> Optional[ModelDescriptor]:
        """Describe one upstream /models entry, or return None to exclude it."""
        model_id = entry.get("id") or entry.get("name")
        if not isinstance(model_id, str) or not model_id:
            return None
        return self.build_descriptor(
            model_id,
            context_length=entry.get("context_length")
            or entry.get("context_window")
            or entry.get("max_context_length"),
            owned_by=entry.get("owned_by"),
            display_name=entry.get("display_name") or entry.get("name"),
            images="vision" in model_id.lower(),
        )

    def build_descriptor(
        self,
        model_id: str,
        *,
        context_length: Any = None,
        owned_by: Optional[str] = None,
        display_name: Optional[str] = None,
        images: bool = False,
        audio: bool = False,
        prompt_cost: float = 0.0,
        completion_cost: float = 0.0,
        created: Optional[int] = None,
    ) -> ModelDescriptor:
        try:
            context = int(context_length or 0)
        except (TypeError, ValueError):
            context = 0
        extra = {"created": int(created)} if isinstance(created, (int, float)) and created > 0 else {}
        return ModelDescriptor(
            id=self.format_model_name(model_id),
            display_name=display_name or model_id.split("/")[-1],
            context_length=context if context > 0 else DEFAULT_CONTEXT_LENGTH,
            owned_by=owned_by or self.name,
            capabilities=ModelCapabilities(text=True, images=images, audio=audio),
            pricing=ModelPricing(
                prompt_cost_per_1k=max(0.0, prompt_cost),
                completion_cost_per_1k=max(0.0, completion_cost),
            ),
            **extra,
        )

    def _extract_model_entries(self, payload: Any) -> List[Dict[str, Any]]:
        data = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(data, list):
            raise UpstreamError(
                f"{self.name} returned an unexpected /models payload", provider=self.name
            )
        return [item if isinstance(item, dict) else {"id": item} for item in data]

    async def fetch_models(self) -> Iterable[ModelDescriptor]:
        key_state = None
        if self.requires_api_key:
            key_state = self.key_rotator.get_active_key()
            if key_state is None:
                raise self._no_key_error()

        response = await self.http_client.get(
            f"{self.base_url}{self.models_path}",
            headers=self.build_headers(key_state),
            timeout=min(self.request_timeout, 20.0),
        )
        response.raise_for_status()

        models: List[ModelDescriptor] = []
        for entry in self._extract_model_entries(response.json()):
            descriptor = self.parse_model_entry(entry)
            if descriptor is not None:
                models.append(descriptor)
        return models

    # =========================================================================
    # Normalization hooks
    # =========================================================================

    def normalize_response(self, raw: Any, model: str) -> Dict[str, Any]:
        return normalize_response(raw, model)

    def normalize_chunk(
        self, raw: Any, model: str, completion_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        return normalize_chunk(raw, model, completion_id)

    # =========================================================================
    # Error classification
    # =========================================================================

    def _no_key_error(self) -> NoKeyAvailableError:
        retry_in = self.key_rotator.next_available_in()
        if retry_in is None:
            return NoKeyAvailableError(
                f"All {self.name} API keys were rejected by upstream", provider=self.name
            )
        return NoKeyAvailableError(
            f"All {self.name} API keys are cooling down (next in {retry_in:.0f}s)",
            provider=self.name,
            transient=True,
        )

    def _handle_upstream_error(
        self,
        status_code: int,
        message: str,
        model: str,
        key_state: Optional[ApiKeyState],
    ) -> GatewayError:
        """Apply key/model side effects for an upstream failure and build the error."""
        error_cls = classify_http_status(status_code)
        detail = f"{self.name} HTTP {status_code}: {message}"

        if error_cls is UnauthorizedError:
            if key_state is not None:
                self.key_rotator.mark_auth_failure(key_state)
            return UnauthorizedError(detail, provider=self.name, status_code=status_code)

        if error_cls is QuotaExceededError:
            self.disable_model(model, reason=f"HTTP {status_code}")
            return QuotaExceededError(detail, provider=self.name, status_code=status_code)

        if error_cls is RateLimitedError:
            if key_state is not None:
                self.key_rotator.mark_rate_limited(key_state)
            return RateLimitedError(detail, provider=self.name, status_code=status_code)

        return error_cls(
            detail,
            provider=self.name,
            status_code=status_code,
            transient=status_code in TRANSIENT_STATUS_CODES,
        )

    async def _error_from_response(
        self,
        response: httpx.Response,
        model: str,
        key_state: Optional[ApiKeyState],
    ) -> GatewayError:
        try:
            await response.aread()
            text = response.text
        except httpx.HTTPError:
            text = ""
        finally:
            await response.aclose()

        try:
            body = json.loads(text) if text else None
        except json.JSONDecodeError:
            body = None

        message = _error_message_from_body(body, text[:300] or response.reason_phrase)
        return self._handle_upstream_error(response.status_code, message, model, key_state)

    def _error_from_payload(
        self,
        payload: Dict[str, Any],
        model: str,
        key_state: Optional[ApiKeyState],
    ) -> GatewayError:
        error = payload.get("error")
        error_payload = error if isinstance(error, dict) else {"message": str(error)}
        status_code = _error_status_from_payload(error_payload)
        message = _error_message_from_body(payload, "upstream reported an error")
        return self._handle_upstream_error(status_code, message, model, key_state)

    # =========================================================================
    # Main completion flow
    # =========================================================================

    async def _send(
        self,
        payload: Dict[str, Any],
        key_state: Optional[ApiKeyState],
        *,
        stream: bool,
        timeout: Optional[float],
        extra_headers: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        request = self.http_client.build_request(
            "POST",
            f"{self.base_url}{self.chat_path}",
            headers=self.build_headers(key_state, stream=stream, extra_headers=extra_headers),
            json=payload,
            timeout=httpx.Timeout(timeout or self.request_timeout, connect=DEFAULT_CONNECT_TIMEOUT),
        )
        return await self.http_client.send(request, stream=stream)

    def _read_completion(
        self,
        response: httpx.Response,
        model: str,
        key_state: Optional[ApiKeyState],
    ) -> Dict[str, Any]:
        try:
            raw = response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{self.name} returned a malformed response body: {e}",
                provider=self.name,
                status_code=response.status_code,
            )
        if isinstance(raw, dict) and raw.get("error") and not raw.get("choices"):
            raise self._error_from_payload(raw, model, key_state)
        return self.normalize_response(raw, model)

    async def _iter_chunks(
        self,
        response: httpx.Response,
        model: str,
        key_state: Optional[ApiKeyState],
    ) -> AsyncGenerator[Dict[str, Any], None]:
        completion_id: Optional[str] = None
        skipped = 0
        try:
            async for event in iter_sse_events(response.aiter_lines()):
                if isinstance(event, dict) and event.get("error") and not event.get("choices"):
                    raise self._error_from_payload(event, model, key_state)

                chunk = self.normalize_chunk(event, model, completion_id)
                if chunk is None:
                    skipped += 1
                    continue
                completion_id = chunk["id"]
                yield chunk
        except httpx.TimeoutException as e:
            raise GatewayTimeoutError(
                f"{self.name} stream timed out: {e}", provider=self.name
            ) from e
        except httpx.TransportError as e:
            raise UpstreamError(
                f"{self.name} stream interrupted: {e}", provider=self.name
            ) from e
        finally:
            await response.aclose()
            if skipped:
                lib_logger.debug(f"{self.name}: skipped {skipped} malformed stream events for {model}")

    def _open_stream(
        self,
        response: httpx.Response,
        model: str,
        key_state: Optional[ApiKeyState],
    ) -> ChatStream:
        return ChatStream(
            self._iter_chunks(response, model, key_state),
            model=model,
            provider=self.name,
            on_close=response.aclose,
        )

    async def chat(self, messages: List[Dict[str, Any]], **options: Any) -> ChatResult:
        validate_chat_request(messages, options)

        model = self.format_model_name(options["model"])
        if self.is_model_disabled(model):
            raise QuotaExceededError(
                f"Model {model} is disabled for {self.name}",
                provider=self.name,
                status_code=402,
            )

        stream = bool(options.get("stream"))
        payload = self.build_payload(self.get_base_model_name(model), messages, options)
        timeout = options.get("timeout")
        extra_headers = options.get("extra_headers")

        server_failures = 0
        rate_limited = 0
        auth_error: Optional[UnauthorizedError] = None

        while True:
            key_state: Optional[ApiKeyState] = None
            if self.requires_api_key:
                key_state = self.key_rotator.get_active_key()
                if key_state is None:
                    if rate_limited:
                        raise RateLimitedError(
                            f"All {self.name} API keys are rate limited",
                            provider=self.name,
                            status_code=429,
                        )
                    if auth_error is not None:
                        raise auth_error
                    raise self._no_key_error()

            try:
                response = await self._send(
                    payload,
                    key_state,
                    stream=stream,
                    timeout=timeout,
                    extra_headers=extra_headers,
                )
            except httpx.TimeoutException as e:
                error: GatewayError = GatewayTimeoutError(
                    f"{self.name} request timed out: {e}", provider=self.name
                )
            except httpx.TransportError as e:
                error = UpstreamError(f"{self.name} connection failed: {e}", provider=self.name)
            else:
                if response.status_code < 400:
                    if key_state is not None:
                        self.key_rotator.mark_success(key_state)
                    if stream:
                        return self._open_stream(response, model, key_state)
                    try:
                        return self._read_completion(response, model, key_state)
                    except GatewayError as e:
                        error = e
                else:
                    error = await self._error_from_response(response, model, key_state)

            if isinstance(error, RateLimitedError):
                rate_limited += 1
                if key_state is None or rate_limited >= len(self.key_rotator):
                    raise error
                lib_logger.debug(
                    f"{self.name}: key {mask_credential(key_state.secret)} rate limited, "
                    "rotating to next key",
                    extra={"provider": self.name, "model": model, "event": "key_rotation"},
                )
                continue

            if isinstance(error, UnauthorizedError) and key_state is not None:
                # Key already benched by _handle_upstream_error
                auth_error = error
                lib_logger.debug(
                    f"{self.name}: key {mask_credential(key_state.secret)} rejected, "
                    "trying next key",
                    extra={"provider": self.name, "model": model, "event": "key_rotation"},
                )
                continue

            if not error.transient:
                raise error

            server_failures += 1
            if server_failures >= self.max_retries:
                lib_logger.error(
                    f"{self.name}: giving up on {model} after {server_failures} attempts: {error}",
                    extra={"provider": self.name, "model": model, "event": "retries_exhausted"},
                )
                raise error

            delay = self.backoff_base * (2 ** (server_failures - 1))
            lib_logger.debug(
                f"{self.name}: {error} (attempt {server_failures}/{self.max_retries}), "
                f"retrying in {delay:.1f}s",
                extra={"provider": self.name, "model": model, "event": "upstream_retry"},
            )
            await self.sleep(delay)
