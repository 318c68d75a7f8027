"""Error taxonomy for the MiniMax chat client.

TransportError   - connection-level failure (retryable unless stated otherwise)
ProviderError    - parsed from a provider error envelope
ProtocolError    - response or stream frame that does not match the wire format
ExhaustedRetriesError - wraps the last error once the retry budget is spent
"""

from __future__ import annotations

# Known provider status codes and what they mean to a caller.
ERROR_CODE_DESCRIPTIONS: dict[int, str] = {
    1000: "Unknown error - retry may help",
    1001: "Request timeout - retry may help",
    1002: "Rate limit exceeded - wait and retry",
    1004: "Not authorized - check your API key",
    1008: "Insufficient balance - check your account",
    1024: "Internal error - retry may help",
    1039: "Token limit exceeded - reduce input size",
    2013: "Invalid parameters - check request format",
}

# Allow-list: anything not listed here fails fast.
RETRYABLE_CODES: frozenset[int] = frozenset({1000, 1001, 1002, 1024})


def is_retryable_code(code: int) -> bool:
    return code in RETRYABLE_CODES


class MiniMaxError(Exception):
    """Base class for every error raised or emitted by the client."""

    def __init__(
        self,
        message: str,
        *,
        code: int = 0,
        http_status: int = 0,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self._message = message
        self._code = code
        self._http_status = http_status
        self._retryable = retryable

    @property
    def message(self) -> str:
        return self._message

    @property
    def code(self) -> int:
        return self._code

    @property
    def http_status(self) -> int:
        return self._http_status

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def description(self) -> str | None:
        """Human hint for a known provider code, ``None`` otherwise."""
        return ERROR_CODE_DESCRIPTIONS.get(self._code)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self._code}, "
            f"http_status={self._http_status}, retryable={self._retryable}, "
            f"message={self._message!r})"
        )


class TransportError(MiniMaxError):
    """Network-layer failure, or a response body that is not JSON."""

    def __init__(
        self,
        message: str,
        *,
        code: int = 0,
        http_status: int = 0,
        retryable: bool = True,
    ) -> None:
        super().__init__(
            message, code=code, http_status=http_status, retryable=retryable,
        )


class ProviderError(MiniMaxError):
    """Error reported by the provider in its error envelope."""


class ProtocolError(MiniMaxError):
    """Payload that cannot be interpreted as the provider's wire format."""


class ExhaustedRetriesError(MiniMaxError):
    """Raised after the retry budget is spent on retryable failures."""

    def __init__(self, last_error: MiniMaxError, attempts: int) -> None:
        super().__init__(
            f"Giving up after {attempts} attempts: {last_error.message}",
            code=last_error.code,
            http_status=last_error.http_status,
            retryable=False,
        )
        self.last_error = last_error
        self.attempts = attempts
