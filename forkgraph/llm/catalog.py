"""Catalog of the chat models a conversation node can be bound to."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    description: str
    provider: str


AI_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo(
        id="llama-3.3-70b-versatile",
        name="Llama 3.3 70B",
        description="Most capable Llama model",
        provider="groq",
    ),
    ModelInfo(
        id="llama-3.1-8b-instant",
        name="Llama 3.1 8B",
        description="Fast and efficient",
        provider="groq",
    ),
    ModelInfo(
        id="mixtral-8x7b-32768",
        name="Mixtral 8x7B",
        description="Expert mixture model",
        provider="groq",
    ),
    ModelInfo(
        id="gemma2-9b-it",
        name="Gemma 2 9B",
        description="Lightweight and efficient",
        provider="groq",
    ),
    ModelInfo(
        id="openai/gpt-oss-120b",
        name="GPT-OSS 120B",
        description="OpenAI large open-weight model",
        provider="groq",
    ),
    ModelInfo(
        id="openai/gpt-oss-20b",
        name="GPT-OSS 20B",
        description="OpenAI compact open-weight model",
        provider="groq",
    ),
)

_BY_ID = {m.id: m for m in AI_MODELS}


def is_known_model(model_id: str) -> bool:
    return model_id in _BY_ID


def get_model_info(model_id: str) -> ModelInfo:
    """Return the catalog entry for *model_id*, falling back to the first model."""
    return _BY_ID.get(model_id, AI_MODELS[0])
