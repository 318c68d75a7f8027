"""Conversion of conversation turns into MiniMax chat messages.

The wire format only knows ``system``, ``user`` and ``assistant`` roles
with plain string content.  Tool results have no native role and are sent
as a synthetic user message (``Tool result for <id>: <json>``); the model
sees them as user text, which is a known limitation of this API.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from minimax_chat.types import (
    ContentSegment,
    ConversationTurn,
    Role,
    TextSegment,
    ToolResultSegment,
)

_logger = logging.getLogger(__name__)


def _texts(segments: Iterable[ContentSegment]) -> list[str]:
    return [s.text or "" for s in segments if isinstance(s, TextSegment)]


def _tool_result_line(segment: ToolResultSegment) -> str:
    result = segment.result if segment.result is not None else {}
    try:
        payload = json.dumps(result, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        payload = json.dumps(str(result), ensure_ascii=False)
    return f"Tool result for {segment.tool_call_id or 'unknown'}: {payload}"


def convert_turn(turn: ConversationTurn) -> dict[str, Any]:
    """Convert a single turn.  Never raises on empty or odd content."""
    segments = turn.segments or []

    if turn.role is Role.SYSTEM:
        return {"role": "system", "content": "\n".join(_texts(segments))}

    if turn.role is Role.USER:
        return {"role": "user", "content": "\n".join(_texts(segments))}

    if turn.role is Role.ASSISTANT:
        # No separator: reproduce earlier output exactly
        return {"role": "assistant", "content": "".join(_texts(segments))}

    if turn.role is Role.TOOL:
        lines = [
            _tool_result_line(s) for s in segments
            if isinstance(s, ToolResultSegment)
        ]
        if not lines:
            _logger.debug("Tool turn without a tool result, sending empty message")
        return {"role": "user", "content": "\n".join(lines)}

    raise TypeError(f"Unhandled role: {turn.role!r}")


def convert_turns(turns: Iterable[ConversationTurn]) -> list[dict[str, Any]]:
    """Map an ordered conversation to the flat ``{role, content}`` list."""
    return [convert_turn(turn) for turn in turns]
