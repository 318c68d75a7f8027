"""Async MiniMax chat-completion client.

Uses ``httpx.AsyncClient`` against the OpenAI-compatible endpoint and
exposes ``async def generate()`` / ``async def stream()``.  Only the
initial connection is retried; once a stream is delivering events, a
failure ends it with an ``ErrorEvent``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncGenerator, Iterable

import httpx

from minimax_chat.config import API_KEY_ENV, ClientConfig, ModelSettings
from minimax_chat.errors import ProtocolError, ProviderError
from minimax_chat.models import DEFAULT_MODEL, model_info
from minimax_chat.types import (
    ConversationTurn,
    FinishReason,
    GenerateResult,
    ProviderExtensions,
    RequestParameters,
    StreamEvent,
    Usage,
)

from .error_classifier import ErrorClassifier
from .messages import convert_turns
from .request import build_request
from .retry import RetryingTransport, SleepFn
from .stream_decoder import StreamDecoder

_logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"


class EventStream:
    """Lazy sequence of :class:`StreamEvent` bound to one open response.

    Iterate with ``async for``.  Leaving an ``async with`` block or calling
    :meth:`aclose` releases the connection; no events follow a close.
    """

    def __init__(
        self,
        response: httpx.Response,
        decoder: StreamDecoder,
        request_body: dict[str, Any],
    ) -> None:
        self.request_body = request_body
        self.text_id = decoder.text_id
        self._response = response
        self._events: AsyncGenerator[StreamEvent, None] = decoder.decode(
            response.aiter_bytes(),
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> StreamEvent:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._events.__anext__()
        except BaseException:
            # StopAsyncIteration, cancellation, or a bug: release either way
            await self.aclose()
            raise

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._events.aclose()
        finally:
            await self._response.aclose()

    async def __aenter__(self) -> EventStream:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class MiniMaxClient:
    """Client for one MiniMax chat model.

    Holds only immutable configuration; every call owns its own buffers,
    retry counter and backoff timer, so calls may run concurrently.
    """

    provider = "minimax"

    def __init__(
        self,
        model_id: str = DEFAULT_MODEL,
        config: ClientConfig | None = None,
        settings: ModelSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.model_id = model_id
        self.config = config or ClientConfig.from_env()
        self.settings = settings or ModelSettings()

        if not self.config.api_key:
            _logger.warning(
                "No API key provided. Set %s or pass api_key in the config.",
                API_KEY_ENV,
            )
        if model_info(model_id) is None:
            _logger.debug("Model %s is not in the catalog", model_id)

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        base_url = self.config.base_url.rstrip("/")

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(
                self.config.timeout, connect=self.config.connect_timeout,
            ),
            transport=transport,
        )
        self._stream_client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(
                self.config.timeout,
                connect=self.config.connect_timeout,
                read=self.config.stream_read_timeout,
            ),
            transport=transport,
        )
        self._classifier = ErrorClassifier()
        self._retry = RetryingTransport(
            self.config.max_retries,
            self.config.retry_delay,
            classifier=self._classifier,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def resolve_parameters(self, params: RequestParameters | None = None) -> RequestParameters:
        """Layer explicitly-set call parameters over the model defaults."""
        defaults: dict[str, Any] = {}
        if self.settings.temperature is not None:
            defaults["temperature"] = self.settings.temperature
        if self.settings.top_p is not None:
            defaults["top_p"] = self.settings.top_p
        if self.settings.max_tokens is not None:
            defaults["max_output_tokens"] = self.settings.max_tokens
        if self.config.reasoning_split:
            defaults["extensions"] = ProviderExtensions(reasoning_split=True)

        base = RequestParameters(**defaults)
        if params is None:
            return base
        return base.model_copy(
            update={name: getattr(params, name) for name in params.model_fields_set},
        )

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def generate(
        self,
        turns: Iterable[ConversationTurn],
        params: RequestParameters | None = None,
    ) -> GenerateResult:
        """Send one non-streaming chat completion and return its result."""
        body = build_request(
            self.model_id, convert_turns(turns), self.resolve_parameters(params),
            stream=False,
        )
        _logger.debug(
            "generate: model=%s messages=%d", self.model_id, len(body["messages"]),
        )

        async def _send() -> httpx.Response:
            response = await self._client.post(CHAT_COMPLETIONS_PATH, json=body)
            if response.is_success:
                error = self._in_band_error(response)
                if error is not None:
                    raise error
            return response

        response = await self._retry.call(_send)

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ProtocolError(
                "MiniMax returned a non-JSON response",
                http_status=response.status_code,
            ) from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise ProtocolError(
                "MiniMax response has no choices", http_status=response.status_code,
            )
        choice = choices[0]
        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise ProtocolError(
                "MiniMax response has a malformed message",
                http_status=response.status_code,
            )
        content = message.get("content")
        if content is not None and not isinstance(content, str):
            raise ProtocolError(
                "MiniMax response content is not a string",
                http_status=response.status_code,
            )
        try:
            usage = Usage.from_provider(data.get("usage"))
        except (TypeError, ValueError) as e:
            raise ProtocolError(
                f"MiniMax response has malformed usage: {e}",
                http_status=response.status_code,
            ) from e

        return GenerateResult(
            text=content or "",
            finish_reason=FinishReason.from_provider(choice.get("finish_reason")),
            usage=usage,
            model=data.get("model", self.model_id),
            request_body=body,
            response_body=data,
        )

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(
        self,
        turns: Iterable[ConversationTurn],
        params: RequestParameters | None = None,
    ) -> EventStream:
        """Open a streaming chat completion.

        Connection failures are retried and raised here; the returned
        :class:`EventStream` reports later failures as events.
        """
        body = build_request(
            self.model_id, convert_turns(turns), self.resolve_parameters(params),
            stream=True,
        )
        _logger.debug(
            "stream: model=%s messages=%d", self.model_id, len(body["messages"]),
        )

        async def _send() -> httpx.Response:
            request = self._stream_client.build_request(
                "POST", CHAT_COMPLETIONS_PATH, json=body,
            )
            response = await self._stream_client.send(request, stream=True)
            content_type = response.headers.get("content-type", "")
            if response.is_success and content_type.startswith("application/json"):
                # Errors on a stream request come back as a plain JSON body
                try:
                    await response.aread()
                finally:
                    await response.aclose()
                error = self._in_band_error(response)
                if error is not None:
                    raise error
                raise ProtocolError(
                    "Expected an event stream, got a JSON body",
                    http_status=response.status_code,
                )
            return response

        response = await self._retry.call(_send)
        return EventStream(response, StreamDecoder(classifier=self._classifier), body)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _in_band_error(self, response: httpx.Response) -> ProviderError | None:
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        return self._classifier.in_band(data, response.status_code)

    async def close(self) -> None:
        """Close underlying HTTP clients."""
        await self._client.aclose()
        await self._stream_client.aclose()

    async def __aenter__(self) -> MiniMaxClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


def create_client(
    model_id: str = DEFAULT_MODEL,
    *,
    api_key: str | None = None,
    config: ClientConfig | None = None,
    settings: ModelSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> MiniMaxClient:
    """Create a client, taking unset values from the environment."""
    config = config or ClientConfig.from_env()
    if api_key:
        config = config.model_copy(update={"api_key": api_key})
    return MiniMaxClient(model_id, config, settings, transport=transport)


def get_client(api_key: str | None = None, model_id: str = DEFAULT_MODEL) -> MiniMaxClient:
    """Client for *model_id* (``MiniMax-M2.1`` by default)."""
    return create_client(model_id, api_key=api_key)


__all__ = [
    "CHAT_COMPLETIONS_PATH",
    "EventStream",
    "MiniMaxClient",
    "create_client",
    "get_client",
]
