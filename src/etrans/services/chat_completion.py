"""Generic chat-completion translation service (OpenAI-compatible APIs)."""
import os
from typing import Any, Dict, Optional

import requests

from ..errors import (
    EmptyResponseError,
    ProviderHTTPError,
    ProviderResponseError,
    ProviderTransportError,
)
from ..languages import language_name
from .base import BaseTranslationService


DEFAULT_BASE_URL = "https://api.openai.com/v1"
COMPLETION_PATH = "/chat/completions"
TRANSLATION_ONLY = "Only return the translated text without any explanations or extra quotes."


def completion_url(base_url: str) -> str:
    """Append the chat-completion path unless the URL already ends with it."""
    if base_url.endswith(COMPLETION_PATH):
        return base_url
    if base_url.endswith('/'):
        return base_url + COMPLETION_PATH.lstrip('/')
    return base_url + COMPLETION_PATH


class ChatCompletionService(BaseTranslationService):
    """Translate through any endpoint speaking the chat-completion protocol."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.3,
        timeout: int = 60,
        max_tokens: Optional[int] = None,
        extra: Optional[Dict[str, Any]] = None,
        provider: str = "custom",
    ):
        """Initialize the service.

        Args:
            api_key: Bearer token; requests are sent unauthenticated when empty
            base_url: API base URL (default: ETRANS_BASE_URL or OpenAI)
            model: Model identifier sent with each request
            temperature: Sampling temperature (default: 0.3 for literal translations)
            timeout: Request timeout in seconds
            max_tokens: Optional completion length limit
            extra: Additional request body parameters
            provider: Provider family name reported by name()
        """
        self.api_key = api_key or ''
        self.base_url = base_url or os.getenv('ETRANS_BASE_URL', DEFAULT_BASE_URL)
        self.api_url = completion_url(self.base_url)
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.extra = dict(extra or {})
        self.provider = provider

    def name(self) -> str:
        """Return service name."""
        return self.provider

    def build_system_prompt(self, target_lang: str, instruction: str = "") -> str:
        prompt = (
            "You are a professional translator. "
            f"Translate the following text into {language_name(target_lang)}."
        )
        return f"{prompt}\n{instruction or TRANSLATION_ONLY}"

    def build_payload(self, text: str, target_lang: str, instruction: str = "") -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        payload.update({
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.build_system_prompt(target_lang, instruction)},
                {"role": "user", "content": text},
            ],
            "temperature": self.temperature,
        })
        if self.max_tokens:
            payload["max_tokens"] = self.max_tokens
        return payload

    def translate(self, text: str, target_lang: str, instruction: str = "") -> str:
        """Translate a single text segment.

        Args:
            text: Text to translate
            target_lang: Target language code or name
            instruction: Optional instruction replacing the translation-only constraint

        Returns:
            Translated text with surrounding whitespace removed

        Raises:
            ProviderTransportError: The request never got an answer
            ProviderHTTPError: Non-success HTTP status
            ProviderResponseError: Error payload or undecodable body
            EmptyResponseError: No choices or empty content
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = requests.post(
                self.api_url,
                json=self.build_payload(text, target_lang, instruction),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ProviderTransportError(
                f"Request to {self.api_url} timed out after {self.timeout} seconds"
            ) from e
        except requests.exceptions.RequestException as e:
            raise ProviderTransportError(f"Send request to {self.api_url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ProviderHTTPError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderResponseError(f"undecodable response body: {e}") from e
        if not isinstance(data, dict):
            raise ProviderResponseError("unexpected response payload")

        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            raise ProviderResponseError(str(error["message"]), code=error.get("code"))
        if isinstance(error, str) and error:
            raise ProviderResponseError(error)

        choices = data.get("choices") or []
        if not choices:
            raise EmptyResponseError("no translation returned")

        message = (choices[0] or {}).get("message") or {}
        content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            raise EmptyResponseError("empty translation returned")
        return content.strip()
