from app.ai.config import AIConfig, load_ai_config
from app.ai.types import GenerationBackend


def get_generation_backend(cfg: AIConfig | None = None) -> GenerationBackend:
    cfg = cfg or load_ai_config()

    if cfg.provider == "gemini":
        from app.ai.providers.gemini_provider import GeminiProvider

        return GeminiProvider(model=cfg.model, temperature=cfg.temperature)

    if cfg.provider == "openai":
        from app.ai.providers.openai_provider import OpenAIProvider

        return OpenAIProvider(model=cfg.model, timeout_s=cfg.timeout_s, temperature=cfg.temperature)

    raise ValueError(f"Unsupported AI_PROVIDER='{cfg.provider}'")
