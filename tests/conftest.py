"""Shared fixtures for etrans tests."""
from typing import Callable, Dict, List, Optional

import pytest
from rich.console import Console

from etrans.cache import HybridCache
from etrans.document import Document, MetadataCapable
from etrans.errors import ProviderHTTPError
from etrans.pipeline import DocumentTranslator
from etrans.services.base import BaseTranslationService


# --- Sample XHTML content ---

SIMPLE_XHTML = b"""<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Test</title></head>
<body>
<h1>Hello World</h1>
<p>This is a test paragraph.</p>
<p>Another paragraph here.</p>
</body>
</html>"""

XHTML_WITH_CODE = b"""<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Test</title></head>
<body>
<p>Translate this text.</p>
<pre>do_not_translate()</pre>
<code>also_skip</code>
<p>Translate this too.</p>
</body>
</html>"""


# --- Test doubles ---

class StubService(BaseTranslationService):
    """Translation service that records calls and fails on demand."""

    def __init__(self, table: Optional[Dict[str, str]] = None, fail=()):
        self.table = dict(table or {})
        self.fail = set(fail)
        self.calls: List[str] = []

    def name(self) -> str:
        return "stub"

    def translate(self, text: str, target_lang: str, instruction: str = "") -> str:
        self.calls.append(text)
        if text in self.fail:
            raise ProviderHTTPError(500, '{"error": "boom"}')
        if text in self.table:
            return self.table[text]
        return f"{text.upper()} [{target_lang}]"


class FakeDocument(Document):
    """In-memory document recording what the pipeline does to it."""

    def __init__(self, blocks: List[str]):
        self.blocks = list(blocks)
        self.inserted_mode: Optional[str] = None
        self.inserted: Optional[Dict[str, str]] = None
        self.saved_to: Optional[str] = None
        self.save_error: Optional[Exception] = None

    def extract_blocks(self) -> List[str]:
        return list(self.blocks)

    def insert_bilingual(self, translations):
        self.inserted_mode = "bilingual"
        self.inserted = dict(translations)

    def insert_monolingual(self, translations):
        self.inserted_mode = "monolingual"
        self.inserted = dict(translations)

    def save(self, path):
        if self.save_error is not None:
            raise self.save_error
        self.saved_to = path

    def render(self) -> List[str]:
        """Blocks as they would appear in the output."""
        mapping = self.inserted or {}
        if self.inserted_mode == "bilingual":
            return [f"{b}\n{mapping[b]}" if b in mapping else b for b in self.blocks]
        return [mapping.get(b, b) for b in self.blocks]


class FakeBookDocument(FakeDocument, MetadataCapable):
    """Fake document that also carries a title, an author and a TOC."""

    def __init__(self, blocks: List[str], title="A Title", author="An Author", toc=("Part One",)):
        super().__init__(blocks)
        self.metadata = {"title": title, "creator": author}
        self.toc = list(toc)
        self.language = "en"
        self.toc_error: Optional[Exception] = None

    def translate_metadata(self, translate: Callable[[str], str]):
        result = {}
        for field, value in self.metadata.items():
            new_value = translate(value)
            result[field] = [(value, new_value)]
            self.metadata[field] = new_value
        return result

    def translate_toc(self, translate: Callable[[str], str]) -> int:
        if self.toc_error is not None:
            raise self.toc_error
        self.toc = [translate(label) for label in self.toc]
        return len(self.toc)

    def set_language(self, lang: str) -> None:
        self.language = lang


# --- Fixtures ---

@pytest.fixture
def quiet_console():
    return Console(quiet=True)


@pytest.fixture
def tmp_cache(tmp_path, quiet_console):
    """Create a HybridCache in a temporary directory (no background sweeper)."""
    cache = HybridCache(cache_dir=tmp_path / "cache", sweep_interval=None, console=quiet_console)
    yield cache
    cache.close()


@pytest.fixture
def stub_service():
    return StubService()


@pytest.fixture
def make_translator(tmp_cache, quiet_console):
    """Build a DocumentTranslator whose opener always returns ``document``."""

    def factory(service, document, cache=None, **kwargs):
        return DocumentTranslator(
            service,
            cache or tmp_cache,
            console=quiet_console,
            opener=lambda path: document,
            **kwargs
        )

    return factory


@pytest.fixture
def minimal_epub(tmp_path):
    """Create a minimal valid EPUB file for testing."""
    from ebooklib import epub

    book = epub.EpubBook()
    book.set_identifier("test-book-001")
    book.set_title("Test Book")
    book.set_language("en")
    book.add_author("Test Author")

    ch1 = epub.EpubHtml(title="Chapter 1", file_name="ch1.xhtml", lang="en", uid="ch1")
    ch1.set_content(SIMPLE_XHTML)
    book.add_item(ch1)

    ch2 = epub.EpubHtml(title="Chapter 2", file_name="ch2.xhtml", lang="en", uid="ch2")
    ch2.set_content(XHTML_WITH_CODE)
    book.add_item(ch2)

    book.toc = [
        epub.Link("ch1.xhtml", "Chapter 1", uid="ch1_link"),
        epub.Link("ch2.xhtml", "Chapter 2", uid="ch2_link"),
    ]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())

    book.spine = ["nav", "ch1", "ch2"]

    epub_path = tmp_path / "test.epub"
    epub.write_epub(str(epub_path), book)
    return epub_path


