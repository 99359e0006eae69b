"""LLM provider configuration using LangChain abstractions."""

import logging

from langchain_core.language_models.chat_models import BaseChatModel

from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("anthropic", "google", "none")


def get_llm(settings: Settings | None = None) -> BaseChatModel | None:
    """Create the configured chat model, or None when generation is off.

    Generation is off when the provider is "none" or its API key is unset;
    callers then answer with extractive excerpts.
    """
    settings = settings or get_settings()
    provider = settings.docquery_llm_provider.lower()

    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported LLM provider: {provider}. "
            "Supported: 'anthropic', 'google', 'none'"
        )

    if not settings.generation_configured:
        logger.info("Generation not configured (provider=%s); using extractive answers", provider)
        return None

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(
            model=settings.docquery_llm_model,
            temperature=settings.docquery_llm_temperature,
            max_tokens=settings.docquery_llm_max_tokens,
            api_key=settings.anthropic_api_key,
        )

    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=settings.docquery_llm_model,
        temperature=settings.docquery_llm_temperature,
        max_output_tokens=settings.docquery_llm_max_tokens,
        google_api_key=settings.google_api_key,
    )
