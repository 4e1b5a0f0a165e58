"""Abstract base class for translation services."""
from abc import ABC, abstractmethod


class BaseTranslationService(ABC):
    """Translation client capability: one text in, one translation out."""

    @abstractmethod
    def translate(self, text: str, target_lang: str, instruction: str = "") -> str:
        """Translate a single text unit.

        Args:
            text: Source text
            target_lang: Target language (code or human-readable name)
            instruction: Optional instruction that overrides the default
                         "translation only" constraint

        Returns:
            Translated text

        Raises:
            TranslationError: On any provider failure
        """
        pass

    @abstractmethod
    def name(self) -> str:
        """Return service name.

        Returns:
            String identifier for the service
        """
        pass
