"""
Model output limits for completion requests.

The writer asks for long answers (several concepts per request), so the
request should carry the model's real completion limit as ``max_tokens``
rather than the provider's often much smaller default. Litellm's model
registry is the fallback source; a small override table covers models it
gets wrong or does not know.

If a model is in neither source, resolve_model_config() raises
ModelConfigError. The generation client catches it and sends no
``max_tokens`` at all, leaving the limit to the provider.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger("aiguide.model_config")


class ModelConfigError(ValueError):
    """Model not found in override table or litellm registry."""


@dataclass(frozen=True)
class ModelConfig:
    """Token limits for a specific chat model."""

    context_window: int        # max input tokens the model accepts
    max_output_tokens: int     # actual provider limit for completions

    def __str__(self) -> str:
        return f"ctx={self.context_window:,} out={self.max_output_tokens:,}"


# ──────────────────────────────────────────────────────────────────────
# Override table. Keys are the model identifier WITHOUT the provider
# prefix (e.g., "gpt-4o" not "openai/gpt-4o").
# ──────────────────────────────────────────────────────────────────────

MODEL_OVERRIDES: dict[str, ModelConfig] = {
    "gpt-4o": ModelConfig(context_window=128_000, max_output_tokens=16_384),
    "gpt-4o-mini": ModelConfig(context_window=128_000, max_output_tokens=16_384),
    "gpt-4.1": ModelConfig(context_window=1_047_576, max_output_tokens=32_768),
    "gpt-4.1-mini": ModelConfig(context_window=1_047_576, max_output_tokens=32_768),
    # Common local models served through an OpenAI-compatible endpoint
    "qwen3-coder:30b": ModelConfig(context_window=32_768, max_output_tokens=8_192),
    "mistral-small:24b": ModelConfig(context_window=32_768, max_output_tokens=8_192),
}

PROVIDER_PREFIXES = (
    "openrouter/", "openai/", "ollama/", "ollama_chat/", "litellm_proxy/", "hosted_vllm/",
)


def _strip_provider_prefix(model: str) -> str:
    """Strip provider routing prefixes like 'openrouter/' or 'ollama/'.

    Examples:
        'openai/gpt-4o'           → 'gpt-4o'
        'ollama/qwen3-coder:30b'  → 'qwen3-coder:30b'
        'gpt-4o-mini'             → 'gpt-4o-mini'
    """
    for prefix in PROVIDER_PREFIXES:
        if model.startswith(prefix):
            return model[len(prefix):]
    return model


def resolve_model_config(model: str) -> ModelConfig:
    """Resolve the token limits for a model.

    Resolution order:
    1. Override table (exact match after stripping provider prefix)
    2. Litellm's model registry
    3. Raise ModelConfigError

    Raises:
        ModelConfigError: if neither source knows the model.
    """
    bare = _strip_provider_prefix(model)

    if bare in MODEL_OVERRIDES:
        return MODEL_OVERRIDES[bare]

    try:
        import litellm
        info = litellm.get_model_info(model)
        if info:
            ctx = info.get("max_input_tokens") or info.get("max_tokens")
            out = info.get("max_output_tokens")
            if ctx and out:
                # max_output should never exceed the context window
                if out > ctx:
                    out = ctx // 2
                return ModelConfig(context_window=ctx, max_output_tokens=out)
    except Exception as e:
        logger.debug("litellm lookup failed for '%s': %s", model, e)

    available = ", ".join(sorted(MODEL_OVERRIDES))
    raise ModelConfigError(
        f"Model '{model}' (bare: '{bare}') not found in override table or litellm registry. "
        f"Known models: {available}"
    )
