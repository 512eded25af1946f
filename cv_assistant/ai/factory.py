from functools import lru_cache

from cv_assistant.ai.types import AIClient
from cv_assistant.core.config import settings

from cv_assistant.ai.providers.openai_provider import OpenAIProvider


@lru_cache(maxsize=1)
def get_ai_client() -> AIClient:
    if settings.ai_provider == "openai":
        return OpenAIProvider(model=settings.ai_model)

    raise ValueError(f"Unsupported AI_PROVIDER='{settings.ai_provider}'")
