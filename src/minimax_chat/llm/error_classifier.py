"""Classification of failed MiniMax responses.

The provider reports failures in one of two envelopes::

    {"error": {"code": 1002, "message": "rate limited"}}
    {"base_resp": {"status_code": 1002, "status_msg": "rate limited"}}

``error`` takes precedence.  When neither carries a code the HTTP status
is used, which never matches the retryable allow-list.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from minimax_chat.errors import (
    MiniMaxError,
    ProviderError,
    TransportError,
    is_retryable_code,
)

_logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


class ErrorClassifier:
    """Turn an HTTP status plus error body into a structured error."""

    def classify(self, http_status: int, body: str | bytes) -> MiniMaxError:
        """Classify a non-success response.

        A body that is not JSON becomes a non-retryable
        :class:`TransportError` carrying the raw text.
        """
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, ValueError):
            return TransportError(
                f"MiniMax API error: {http_status} - {body}",
                code=http_status,
                http_status=http_status,
                retryable=False,
            )
        return self.from_envelope(http_status, data if isinstance(data, dict) else {})

    def from_envelope(self, http_status: int, data: dict[str, Any]) -> ProviderError:
        """Build a :class:`ProviderError` from a parsed error envelope."""
        error = data.get("error")
        error = error if isinstance(error, dict) else {}
        base_resp = data.get("base_resp")
        base_resp = base_resp if isinstance(base_resp, dict) else {}

        code = _as_int(error.get("code"))
        if code is None:
            code = _as_int(base_resp.get("status_code"))
        if code is None:
            code = http_status

        message = error.get("message") or base_resp.get("status_msg") or "Unknown error"
        retryable = is_retryable_code(code)
        _logger.debug(
            "Classified HTTP %d as code=%d retryable=%s", http_status, code, retryable,
        )
        return ProviderError(
            f"MiniMax API error {code}: {message}",
            code=code,
            http_status=http_status,
            retryable=retryable,
        )

    def in_band(self, data: dict[str, Any], http_status: int = 200) -> ProviderError | None:
        """Return the error carried inside a successful payload, if any.

        Streamed frames may carry ``base_resp`` with ``status_code == 0`` on
        success; only a non-zero code or an ``error`` object counts.
        """
        if isinstance(data.get("error"), dict):
            return self.from_envelope(http_status, data)
        base_resp = data.get("base_resp")
        if isinstance(base_resp, dict):
            code = _as_int(base_resp.get("status_code"))
            if code:
                return self.from_envelope(http_status, data)
        return None


_default = ErrorClassifier()


def classify_error(http_status: int, body: str | bytes) -> MiniMaxError:
    """Module-level shortcut for :meth:`ErrorClassifier.classify`."""
    return _default.classify(http_status, body)
