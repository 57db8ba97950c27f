"""Chat-model catalog and streaming inference client."""

from forkgraph.llm.catalog import AI_MODELS, ModelInfo, get_model_info, is_known_model
from forkgraph.llm.groq import GroqClient, InferenceClient

__all__ = [
    "AI_MODELS",
    "GroqClient",
    "InferenceClient",
    "ModelInfo",
    "get_model_info",
    "is_known_model",
]
