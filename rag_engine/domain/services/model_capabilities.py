# rag_engine/domain/services/model_capabilities.py
# Static capability table keyed by generation-model id. Pure, no I/O.
from __future__ import annotations

from ..models import AVAILABLE_GENERATION_MODELS, ModelCapabilities

MODEL_CAPABILITIES: dict[str, ModelCapabilities] = {
    # Small models: few chunks, terse hard-line instructions
    "llama-3.2-1b": ModelCapabilities(max_context=2500, max_chunks=3, prompt_mode="strict"),
    "phi-3.5-3.8b": ModelCapabilities(max_context=4000, max_chunks=4, prompt_mode="balanced"),
    "qwen2.5-3b": ModelCapabilities(max_context=4500, max_chunks=5, prompt_mode="balanced"),
    # Large models: wide context, full synthesis instructions
    "llama-3.1-8b": ModelCapabilities(max_context=6000, max_chunks=6, prompt_mode="rich"),
}

# Mid-tier entry; unknown models are never rejected.
DEFAULT_CAPABILITIES = ModelCapabilities(max_context=4000, max_chunks=4, prompt_mode="balanced")

_SERVING_IDS = {m.serving_id.lower(): m.id for m in AVAILABLE_GENERATION_MODELS}


def resolve_model_id(model_id: str) -> str:
    """Map a serving id (e.g. ``Qwen2.5-3B-Instruct-q4f16_1-MLC``) to its catalog id."""
    key = model_id.strip().lower()
    return _SERVING_IDS.get(key, key)


def get_model_capabilities(model_id: str | None) -> ModelCapabilities:
    if not model_id:
        return DEFAULT_CAPABILITIES
    return MODEL_CAPABILITIES.get(resolve_model_id(model_id), DEFAULT_CAPABILITIES)
