"""Document capability interfaces and format dispatch."""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List

from .errors import InputValidationError, UnsupportedFormatError


SUPPORTED_EXTENSIONS = ('.epub',)


class Document(ABC):
    """A translatable document.

    ``insert_bilingual`` and ``insert_monolingual`` receive a mapping whose keys
    are strings previously returned by ``extract_blocks``; blocks missing from
    the mapping are left in source form.
    """

    @abstractmethod
    def extract_blocks(self) -> List[str]:
        """Return the translatable text units in reading order."""

    @abstractmethod
    def insert_bilingual(self, translations: Dict[str, str]) -> None:
        """Keep each source block and add its translation alongside it."""

    @abstractmethod
    def insert_monolingual(self, translations: Dict[str, str]) -> None:
        """Replace each source block with its translation."""

    @abstractmethod
    def save(self, path: str) -> None:
        """Write the document to ``path``.

        Raises:
            DocumentError: If the output cannot be written
        """


class MetadataCapable(ABC):
    """Optional capability for documents with metadata and a table of contents."""

    @abstractmethod
    def translate_metadata(self, translate: Callable[[str], str]) -> Dict[str, List]:
        """Translate title/author metadata.

        Returns:
            Dict of field -> list of (original, translated) pairs
        """

    @abstractmethod
    def translate_toc(self, translate: Callable[[str], str]) -> int:
        """Translate table-of-contents labels and return how many were changed."""

    @abstractmethod
    def set_language(self, lang: str) -> None:
        """Record the document language in its metadata."""


def _extension(path: str) -> str:
    return Path(path).suffix.lower()


def check_format(path: str) -> None:
    """Raise UnsupportedFormatError unless ``path`` has a supported extension."""
    ext = _extension(path)
    if ext == '.pdf':
        raise UnsupportedFormatError("PDF translation is not supported yet, only .epub files are")
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"Unsupported file format: '{ext or path}'. Only .epub files are supported"
        )


def validate_input(input_path: str, output_path: str, target_lang: str) -> None:
    """Reject a task before any work starts.

    Raises:
        InputValidationError: Missing input path, output path or target language
        UnsupportedFormatError: Input is not an EPUB
    """
    if not input_path:
        raise InputValidationError("Input file path is required")
    if not output_path:
        raise InputValidationError("Output file path is required")
    if not target_lang or not target_lang.strip():
        raise InputValidationError("Target language is required")
    check_format(input_path)


def open_document(path: str) -> Document:
    """Open a document with the backend matching its extension.

    Raises:
        UnsupportedFormatError: For formats other than EPUB
        DocumentError: If the file cannot be read or parsed
    """
    check_format(path)
    from .epub_document import EpubDocument
    return EpubDocument.open(path)


def document_info(path: str) -> Dict[str, Any]:
    """Summarize a document: type, title, author, language and block count."""
    doc = open_document(path)
    info: Dict[str, Any] = {"type": _extension(path).lstrip('.').upper()}
    if hasattr(doc, "metadata_summary"):
        info.update(doc.metadata_summary())
    info["text_blocks"] = len(doc.extract_blocks())
    return info
