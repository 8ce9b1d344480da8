from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MODELS = {
    "gemini": "gemini-2.5-pro",
    "openai": "gpt-4o-mini",
}


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class AIConfig:
    provider: str
    model: str
    max_attempts: int = 3
    retry_delay_s: float = 2.0
    timeout_s: float = 120.0
    temperature: float = 0.2


def load_ai_config() -> AIConfig:
    provider = (os.getenv("AI_PROVIDER") or "gemini").strip().lower()
    model = (os.getenv("AI_MODEL") or DEFAULT_MODELS.get(provider, "")).strip()
    return AIConfig(
        provider=provider,
        model=model,
        max_attempts=max(1, _env_int("AI_MAX_ATTEMPTS", 3)),
        retry_delay_s=max(0.0, _env_float("AI_RETRY_DELAY_S", 2.0)),
        timeout_s=max(1.0, _env_float("AI_TIMEOUT_S", 120.0)),
        temperature=_env_float("AI_TEMPERATURE", 0.2),
    )
