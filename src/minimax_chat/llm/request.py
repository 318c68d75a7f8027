"""Request payload construction for ``POST /chat/completions``."""

from __future__ import annotations

from typing import Any

from minimax_chat.types import RequestParameters


def build_request(
    model: str,
    messages: list[dict[str, Any]],
    params: RequestParameters,
    *,
    stream: bool | None = None,
) -> dict[str, Any]:
    """Combine converted messages and sampling parameters into a payload.

    *stream* overrides ``params.streaming`` when given.  ``max_tokens`` is
    omitted unless set, and extension flags appear only when enabled.
    """
    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "temperature": params.temperature,
        "top_p": params.top_p,
        "stream": params.streaming if stream is None else stream,
    }
    if params.max_output_tokens is not None:
        payload["max_tokens"] = params.max_output_tokens
    if params.extensions is not None and params.extensions.reasoning_split:
        payload["reasoning_split"] = True
    return payload
