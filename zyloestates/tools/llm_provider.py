from typing import Optional

import structlog
from langchain_core.language_models.chat_models import BaseChatModel

from ..config import Settings, get_settings


logger = structlog.get_logger(__name__)


def get_llm(default_to_fake: bool = False, settings: Optional[Settings] = None) -> Optional[BaseChatModel]:
    settings = settings or get_settings()
    provider = settings.llm_provider.lower()
    temperature = settings.llm_temperature

    if provider == "ollama":
        try:
            from langchain_community.chat_models import ChatOllama
            return ChatOllama(model=settings.llm_model, base_url=settings.ollama_base_url, temperature=temperature)
        except Exception as e:
            logger.warning("llm_unavailable", provider=provider, error=str(e))
            if not default_to_fake:
                return None

    if provider in ("openai", "openai_compat"):
        try:
            from langchain_openai import ChatOpenAI
            base_url = settings.openai_base_url if provider == "openai_compat" else None
            return ChatOpenAI(model=settings.openai_model, base_url=base_url, temperature=temperature)
        except Exception as e:
            # missing key or package
            logger.warning("llm_unavailable", provider=provider, error=str(e))
            if not default_to_fake:
                return None

    if default_to_fake or provider == "fake":
        from langchain_core.language_models import FakeListChatModel
        return FakeListChatModel(responses=['{"answer": "Placeholder response", "confidence": 0.5}'])

    return None
