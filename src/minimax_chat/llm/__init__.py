"""HTTP client, retry policy and stream decoding for MiniMax chat."""

from minimax_chat.llm.client import EventStream, MiniMaxClient, create_client, get_client
from minimax_chat.llm.error_classifier import ErrorClassifier, classify_error
from minimax_chat.llm.messages import convert_turn, convert_turns
from minimax_chat.llm.request import build_request
from minimax_chat.llm.retry import RetryingTransport
from minimax_chat.llm.stream_decoder import StreamDecoder

__all__ = [
    "ErrorClassifier",
    "EventStream",
    "MiniMaxClient",
    "RetryingTransport",
    "StreamDecoder",
    "build_request",
    "classify_error",
    "convert_turn",
    "convert_turns",
    "create_client",
    "get_client",
]
