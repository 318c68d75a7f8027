"""Catalog of MiniMax chat models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelInfo:
    name: str
    description: str
    max_tokens: int
    speed: str


DEFAULT_MODEL = "MiniMax-M2.1"

MODELS: dict[str, ModelInfo] = {
    "MiniMax-M2.1": ModelInfo(
        name="MiniMax M2.1",
        description="Recommended for coding tasks, 60 tokens/second",
        max_tokens=200_000,
        speed="~60 tps",
    ),
    "MiniMax-M2.1-lightning": ModelInfo(
        name="MiniMax M2.1 Lightning",
        description="Faster variant, 100 tokens/second",
        max_tokens=200_000,
        speed="~100 tps",
    ),
    "MiniMax-M2": ModelInfo(
        name="MiniMax M2",
        description="Agentic capabilities, advanced reasoning",
        max_tokens=200_000,
        speed="~40 tps",
    ),
}


def model_info(model_id: str) -> ModelInfo | None:
    """Return catalog info for *model_id*, or ``None`` for unlisted models."""
    return MODELS.get(model_id)
