"""Shared data types for the MiniMax chat client."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from minimax_chat.errors import MiniMaxError


# ---------------------------------------------------------------------------
# Conversation types
# ---------------------------------------------------------------------------

class Role(enum.Enum):
    """Author of a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class TextSegment:
    """Plain text content."""

    text: str


@dataclass(frozen=True)
class ToolResultSegment:
    """Result of a tool call, fed back to the model."""

    tool_call_id: str
    result: Any = None
    tool_name: str = ""


ContentSegment = Union[TextSegment, ToolResultSegment]


@dataclass
class ConversationTurn:
    """One turn of a conversation: a role plus ordered content segments."""

    role: Role
    segments: list[ContentSegment] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            self.role = Role(self.role)

    @classmethod
    def system(cls, *texts: str) -> ConversationTurn:
        return cls(Role.SYSTEM, [TextSegment(t) for t in texts])

    @classmethod
    def user(cls, *texts: str) -> ConversationTurn:
        return cls(Role.USER, [TextSegment(t) for t in texts])

    @classmethod
    def assistant(cls, *texts: str) -> ConversationTurn:
        return cls(Role.ASSISTANT, [TextSegment(t) for t in texts])

    @classmethod
    def tool(cls, tool_call_id: str, result: Any, tool_name: str = "") -> ConversationTurn:
        return cls(Role.TOOL, [ToolResultSegment(tool_call_id, result, tool_name)])


# ---------------------------------------------------------------------------
# Request parameters
# ---------------------------------------------------------------------------

class ProviderExtensions(BaseModel):
    """MiniMax-specific request flags."""

    model_config = ConfigDict(frozen=True)

    # Separate thinking content into ``reasoning_details`` (M2.1 models)
    reasoning_split: bool = False


class RequestParameters(BaseModel):
    """Sampling parameters for one call.  Ranges are validated on construction."""

    model_config = ConfigDict(frozen=True)

    temperature: float = Field(1.0, gt=0.0, le=1.0)
    top_p: float = Field(0.95, gt=0.0, le=1.0)
    max_output_tokens: Optional[int] = Field(None, gt=0)
    streaming: bool = False
    extensions: Optional[ProviderExtensions] = None


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Usage:
    """Token accounting.  ``total_tokens`` is always derived."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @classmethod
    def from_provider(cls, raw: dict[str, Any] | None) -> Usage:
        """Read ``prompt_tokens``/``completion_tokens``.

        Raises ``TypeError`` or ``ValueError`` when *raw* is not an object
        of integer counts.
        """
        if not raw:
            return cls()
        if not isinstance(raw, dict):
            raise TypeError(f"usage must be an object, got {type(raw).__name__}")
        return cls(
            input_tokens=int(raw.get("prompt_tokens") or 0),
            output_tokens=int(raw.get("completion_tokens") or 0),
        )


class FinishKind(enum.Enum):
    STOP = "stop"
    LENGTH = "length"
    OTHER = "other"


@dataclass(frozen=True)
class FinishReason:
    """Unified finish reason plus the provider's verbatim value.

    Only ``stop`` and ``length`` are distinguished; anything else maps to
    ``OTHER`` and callers must look at ``raw`` for detail.
    """

    kind: FinishKind
    raw: str | None = None

    @classmethod
    def from_provider(cls, raw: str | None) -> FinishReason:
        if raw == "stop":
            return cls(FinishKind.STOP, raw)
        if raw == "length":
            return cls(FinishKind.LENGTH, raw)
        return cls(FinishKind.OTHER, raw)


@dataclass
class GenerateResult:
    """Result of a non-streaming ``generate`` call."""

    text: str
    finish_reason: FinishReason
    usage: Usage
    model: str = ""
    request_body: dict[str, Any] = field(default_factory=dict)
    response_body: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StreamStart:
    kind: ClassVar[str] = "stream-start"

    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class TextStart:
    kind: ClassVar[str] = "text-start"

    id: str


@dataclass(frozen=True)
class TextDelta:
    kind: ClassVar[str] = "text-delta"

    id: str
    text: str


@dataclass(frozen=True)
class TextEnd:
    kind: ClassVar[str] = "text-end"

    id: str


@dataclass(frozen=True)
class Finish:
    kind: ClassVar[str] = "finish"

    reason: FinishReason
    usage: Usage


@dataclass(frozen=True)
class ErrorEvent:
    kind: ClassVar[str] = "error"

    error: MiniMaxError


StreamEvent = Union[StreamStart, TextStart, TextDelta, TextEnd, Finish, ErrorEvent]
