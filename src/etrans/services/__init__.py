"""Translation service backends."""
from typing import Dict, Type

from ..config import ProviderConfig
from .base import BaseTranslationService
from .chat_completion import ChatCompletionService, completion_url


# Provider registry. Every family currently speaks the chat-completion protocol.
_SERVICES: Dict[str, Type[BaseTranslationService]] = {
    'openai': ChatCompletionService,
    'claude': ChatCompletionService,
    'gemini': ChatCompletionService,
    'deepseek': ChatCompletionService,
    'ollama': ChatCompletionService,
    'nltranslator': ChatCompletionService,
    'custom': ChatCompletionService,
}


def get_service(config: ProviderConfig) -> BaseTranslationService:
    """Factory to create the translation service for a provider config.

    Args:
        config: Provider selection and connection settings

    Returns:
        Initialized translation service instance

    Raises:
        ValueError: If the provider type is not recognized

    Examples:
        >>> service = get_service(ProviderConfig(type='openai', api_key='sk-xxx'))

        >>> # Local OpenAI-compatible server
        >>> service = get_service(ProviderConfig(type='ollama',
        ...                                      api_url='http://localhost:11434/v1',
        ...                                      model='llama3'))
    """
    name_lower = (config.type or '').lower()

    if name_lower not in _SERVICES:
        available = ', '.join(_SERVICES.keys())
        raise ValueError(
            f"Unknown provider '{config.type}'. Available providers: {available}"
        )

    service_class = _SERVICES[name_lower]
    return service_class(
        api_key=config.api_key,
        base_url=config.api_url,
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        extra=config.extra,
        provider=name_lower,
    )


def list_services() -> list:
    """List all available provider types.

    Returns:
        List of provider names
    """
    return list(_SERVICES.keys())


__all__ = [
    'BaseTranslationService',
    'ChatCompletionService',
    'completion_url',
    'get_service',
    'list_services',
]
