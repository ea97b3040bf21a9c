"""
Unified LLM provider layer, powered by LiteLLM.

LiteLLM gives us 100+ providers through a single interface, so no
per-provider connector code lives here.

Model string format (LiteLLM convention):
    "anthropic/claude-sonnet-4-20250514"
    "openai/gpt-4o"
    "groq/llama-3.3-70b-versatile"
    "ollama/qwen2.5-coder"

API keys are read from env vars automatically (ANTHROPIC_API_KEY,
OPENAI_API_KEY, GROQ_API_KEY, ...) unless ``LLMProperties.api_key`` is set.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

import litellm
from litellm import acompletion

logger = logging.getLogger(__name__)

# Suppress litellm's verbose logging by default
litellm.suppress_debug_info = True


# ── Provider Registry ──────────────────────────────────────────────
# Maps provider prefix → env var name for the API key.

PROVIDERS: dict[str, dict] = {
    "anthropic": {"name": "Anthropic (Claude)", "env_key": "ANTHROPIC_API_KEY"},
    "openai": {"name": "OpenAI", "env_key": "OPENAI_API_KEY"},
    "groq": {"name": "Groq", "env_key": "GROQ_API_KEY"},
    "gemini": {"name": "Google Gemini", "env_key": "GEMINI_API_KEY"},
    "mistral": {"name": "Mistral AI", "env_key": "MISTRAL_API_KEY"},
    "deepseek": {"name": "DeepSeek", "env_key": "DEEPSEEK_API_KEY"},
    "fireworks_ai": {"name": "Fireworks AI", "env_key": "FIREWORKS_API_KEY"},
}

# Providers that need no key (local servers).
KEYLESS_PROVIDERS = ("ollama", "lmstudio")


def _has_provider_prefix(model: str) -> bool:
    """Check if a model string already has a provider prefix."""
    known_prefixes = list(PROVIDERS.keys()) + list(KEYLESS_PROVIDERS) + [
        "azure", "huggingface", "together_ai", "bedrock", "openrouter",
    ]
    return any(model.startswith(f"{p}/") for p in known_prefixes)


# ── LLM Properties ─────────────────────────────────────────────────

@dataclass(frozen=True)
class LLMProperties:
    """Which model to call, through which provider, with which key."""
    model: str
    provider: str = ""
    api_key: str | None = None

    @property
    def litellm_model(self) -> str:
        if self.provider and not _has_provider_prefix(self.model):
            return f"{self.provider}/{self.model}"
        return self.model

    def __repr__(self) -> str:
        # never print keys into logs
        return f"LLMProperties(model={self.litellm_model!r})"


# ── Active Model Configuration ────────────────────────────────────

@dataclass
class ModelConfig:
    """Default and fail-over models for the agent."""
    model: str = ""
    failover_model: str = ""

    def __post_init__(self):
        if not self.model:
            self.model = os.getenv("LLM_MODEL", "anthropic/claude-sonnet-4-20250514")
            if not _has_provider_prefix(self.model):
                self.model = f"anthropic/{self.model}"
        if not self.failover_model:
            self.failover_model = os.getenv("LLM_FAILOVER_MODEL", "")
            if self.failover_model and not _has_provider_prefix(self.failover_model):
                self.failover_model = f"openai/{self.failover_model}"

    def default_properties(self) -> LLMProperties:
        return LLMProperties(model=self.model)

    def failover_properties(self) -> LLMProperties | None:
        return LLMProperties(model=self.failover_model) if self.failover_model else None


# Singleton config
_config = ModelConfig()


def get_config() -> ModelConfig:
    return _config


# ── Streaming completion ───────────────────────────────────────────

@dataclass
class LLMStreamChunk:
    """One streamed delta; the last chunk of a stream has ``done=True``."""
    delta: str
    answer_up_until_now: str
    done: bool = False


class LLMBroker:
    """Thin async client over ``litellm.acompletion``.

    ``completion_func`` defaults to litellm's ``acompletion``; tests pass a
    scripted replacement with the same call signature.
    """

    def __init__(self, completion_func: Callable[..., Any] | None = None):
        self._acompletion = completion_func or acompletion

    async def stream_completion(
        self,
        properties: LLMProperties,
        messages: list[dict],
        temperature: float = 0.2,
        max_tokens: int = 4096,
        delta_sink: asyncio.Queue[LLMStreamChunk] | None = None,
        **kwargs,
    ) -> str:
        """
        Stream a chat completion.

        Each non-empty delta is pushed to ``delta_sink`` (if given) as it
        arrives, followed by a final ``done`` chunk carrying the whole
        answer. The aggregate answer is also returned.
        """
        if properties.api_key:
            kwargs["api_key"] = properties.api_key

        logger.debug("[llm] streaming completion model=%s messages=%d", properties.litellm_model, len(messages))
        response = await self._acompletion(
            model=properties.litellm_model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            stream=True,
            **kwargs,
        )

        answer = ""
        async for chunk in response:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content or ""
            if not delta:
                continue
            answer += delta
            if delta_sink is not None:
                delta_sink.put_nowait(LLMStreamChunk(delta=delta, answer_up_until_now=answer))

        if delta_sink is not None:
            delta_sink.put_nowait(LLMStreamChunk(delta="", answer_up_until_now=answer, done=True))
        logger.debug("[llm] completion done model=%s chars=%d", properties.litellm_model, len(answer))
        return answer


# ── Provider Discovery ─────────────────────────────────────────────

def get_available_providers() -> list[dict]:
    """
    Return known providers and whether an API key is configured.

    Each entry: {provider, name, env_key, configured: bool}
    """
    result = []
    for provider_id, info in PROVIDERS.items():
        result.append({
            "provider": provider_id,
            "name": info["name"],
            "env_key": info["env_key"],
            "configured": bool(os.getenv(info["env_key"], "")),
        })
    return result


# ── Startup Log ────────────────────────────────────────────────────

def log_provider_status():
    """Log which providers are configured (call at startup)."""
    configured = [p["name"] for p in get_available_providers() if p["configured"]]
    logger.info(
        "LLM providers configured: %s",
        ", ".join(configured) if configured else "(none)",
    )
    logger.info("Model: %s", _config.model)
    logger.info("Fail-over model: %s", _config.failover_model or "(none)")
