"""Exception taxonomy for etrans."""
from typing import Optional


class EtransError(Exception):
    """Base class for all etrans errors."""


class InputValidationError(EtransError, ValueError):
    """Raised when task inputs are missing or malformed."""


class UnsupportedFormatError(InputValidationError):
    """Raised when the input document format is not supported."""


class TranslationError(EtransError):
    """Raised when the translation provider could not translate a text.

    The pipeline treats every subclass the same way: the block is skipped
    and stays eligible for a later pass.
    """


class ProviderTransportError(TranslationError):
    """Network failure while talking to the provider."""


class ProviderHTTPError(TranslationError):
    """Provider answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"API request failed with status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class ProviderResponseError(TranslationError):
    """Provider reported an error payload, even with a success status."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(f"API error: {message}")
        self.provider_message = message
        self.code = code


class EmptyResponseError(TranslationError):
    """Provider returned no usable translation."""


class DocumentError(EtransError):
    """Raised when a document cannot be opened, modified or saved."""


class EmptyDocumentError(DocumentError):
    """Raised when a document has no translatable text."""


class ProgressError(EtransError):
    """Raised when a persisted progress snapshot is unreadable or corrupt."""
