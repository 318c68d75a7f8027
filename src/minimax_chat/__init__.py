"""Streaming chat-completion client for MiniMax models."""

from minimax_chat.config import ClientConfig, ModelSettings, load_config
from minimax_chat.errors import (
    ExhaustedRetriesError,
    MiniMaxError,
    ProtocolError,
    ProviderError,
    TransportError,
)
from minimax_chat.llm import EventStream, MiniMaxClient, create_client, get_client
from minimax_chat.models import DEFAULT_MODEL, MODELS
from minimax_chat.types import (
    ConversationTurn,
    ErrorEvent,
    Finish,
    FinishKind,
    FinishReason,
    GenerateResult,
    ProviderExtensions,
    RequestParameters,
    Role,
    StreamEvent,
    StreamStart,
    TextDelta,
    TextEnd,
    TextSegment,
    TextStart,
    ToolResultSegment,
    Usage,
)

__version__ = "0.1.0"

__all__ = [
    "ClientConfig",
    "ConversationTurn",
    "DEFAULT_MODEL",
    "ErrorEvent",
    "EventStream",
    "ExhaustedRetriesError",
    "Finish",
    "FinishKind",
    "FinishReason",
    "GenerateResult",
    "MODELS",
    "MiniMaxClient",
    "MiniMaxError",
    "ModelSettings",
    "ProtocolError",
    "ProviderError",
    "ProviderExtensions",
    "RequestParameters",
    "Role",
    "StreamEvent",
    "StreamStart",
    "TextDelta",
    "TextEnd",
    "TextSegment",
    "TextStart",
    "ToolResultSegment",
    "TransportError",
    "Usage",
    "create_client",
    "get_client",
    "load_config",
]
