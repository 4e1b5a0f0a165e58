"""EPUB backend for the document capability."""

import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ebooklib import epub
from lxml import etree

from .document import Document, MetadataCapable
from .errors import DocumentError
from .text_extractor import TextExtractor


DC_NS = 'http://purl.org/dc/elements/1.1/'

# DC fields translated by translate_metadata (creator holds the author)
METADATA_FIELDS = ('title', 'creator')


class EpubDocument(Document, MetadataCapable):
    """An EPUB book whose spine documents are translated text node by text node."""

    def __init__(self, book: epub.EpubBook, path: Optional[str] = None,
                 extractor: Optional[TextExtractor] = None):
        self.book = book
        self.path = path
        self.extractor = extractor or TextExtractor()
        self._chapters: Optional[List[Tuple[epub.EpubHtml, List[str], etree._Element]]] = None

    @classmethod
    def open(cls, path: str) -> "EpubDocument":
        """
        Load an EPUB file.

        Raises:
            DocumentError: If the file is missing, corrupted or invalid
        """
        epub_path = Path(path)
        if not epub_path.exists():
            raise DocumentError(f"EPUB file not found: {path}")

        try:
            book = epub.read_epub(str(epub_path))
        except Exception as e:
            raise DocumentError(f"Failed to load EPUB file: {e}") from e
        return cls(book, str(epub_path))

    def content_documents(self) -> List[epub.EpubHtml]:
        """XHTML documents in spine order, without the navigation document.

        The navigation document is regenerated from the TOC on save, so its
        text is translated through translate_toc instead.
        """
        docs = []
        for item_id, _linear in self.book.spine:
            item = self.book.get_item_with_id(item_id)
            if isinstance(item, epub.EpubHtml) and not isinstance(item, epub.EpubNav):
                docs.append(item)
        return docs

    def _load_chapters(self):
        if self._chapters is not None:
            return self._chapters

        chapters = []
        for item in self.content_documents():
            content = item.get_content()
            if not content or not content.strip():
                continue
            try:
                texts, tree = self.extractor.extract_texts(content)
            except (etree.XMLSyntaxError, etree.ParserError) as e:
                raise DocumentError(f"Failed to parse '{item.file_name}': {e}") from e
            if tree is None:
                continue
            chapters.append((item, texts, tree))
        self._chapters = chapters
        return chapters

    # --- Document ---

    def extract_blocks(self) -> List[str]:
        blocks = []
        for _item, texts, _tree in self._load_chapters():
            blocks.extend(texts)
        return blocks

    def insert_bilingual(self, translations: Dict[str, str]) -> None:
        self._insert(translations, bilingual=True)

    def insert_monolingual(self, translations: Dict[str, str]) -> None:
        self._insert(translations, bilingual=False)

    def _insert(self, translations: Dict[str, str], bilingual: bool) -> None:
        for item, _texts, tree in self._load_chapters():
            if self.extractor.apply_translations(tree, translations, bilingual=bilingual):
                item.set_content(self.extractor.serialize(tree))

    def save(self, path: str) -> None:
        try:
            self._fix_toc_uids()
            epub.write_epub(str(path), self.book)
        except Exception as e:
            raise DocumentError(f"Failed to save EPUB file: {e}") from e
        # write_epub swallows IOError in some ebooklib releases
        if not Path(path).exists():
            raise DocumentError(f"Failed to save EPUB file: {path} was not written")

    # --- MetadataCapable ---

    def translate_metadata(self, translate: Callable[[str], str]) -> Dict[str, List]:
        translated = {}
        for field in METADATA_FIELDS:
            entries = self._dc_entries(field)
            pairs = [(value, translate(value)) for value, _ in entries if value and value.strip()]
            if not pairs:
                continue
            replacements = dict(pairs)
            self._dc_table()[field] = [(replacements.get(value, value), attrs) for value, attrs in entries]
            translated[field] = pairs
        return translated

    def translate_toc(self, translate: Callable[[str], str]) -> int:
        changed = 0

        def new_section(section, index):
            nonlocal changed
            if not getattr(section, 'title', None):
                return section
            translated_section = epub.Section(translate(section.title), getattr(section, 'href', ''))
            translated_section.uid = getattr(section, 'uid', None) or f"toc_section_{index}"
            changed += 1
            return translated_section

        def walk(item, index=0):
            nonlocal changed
            if isinstance(item, (tuple, list)):
                section, children = item[0], item[1]
                return (new_section(section, index), [walk(child, i) for i, child in enumerate(children or [])])
            if isinstance(item, epub.Link):
                if not item.title:
                    return item
                # ebooklib loses UIDs when reading EPUBs
                uid = item.uid or f"toc_link_{index}_{uuid.uuid4().hex[:8]}"
                changed += 1
                return epub.Link(item.href, translate(item.title), uid=uid)
            if isinstance(item, epub.Section):
                return new_section(item, index)
            return item

        self.book.toc = [walk(item, i) for i, item in enumerate(self.book.toc)]
        return changed

    def set_language(self, lang: str) -> None:
        # set_language appends, so drop the source language first
        self._dc_table().pop('language', None)
        self.book.set_language(lang)

    # --- helpers ---

    def metadata_summary(self) -> Dict[str, str]:
        summary = {}
        for key, field in (('title', 'title'), ('author', 'creator'), ('language', 'language')):
            entries = self._dc_entries(field)
            summary[key] = entries[0][0] if entries else ''
        return summary

    def _dc_table(self) -> Dict[str, List]:
        return self.book.metadata.setdefault(DC_NS, {})

    def _dc_entries(self, field: str) -> List:
        return list(self._dc_table().get(field, []))

    def _fix_toc_uids(self) -> None:
        """Fill None UIDs in TOC items (ebooklib loses them on read)."""
        for position, node in enumerate(_toc_nodes(self.book.toc)):
            if hasattr(node, 'uid') and not node.uid:
                node.uid = f"toc_{position}_{uuid.uuid4().hex[:8]}"


def _toc_nodes(items):
    """Yield every Link and Section of a nested ebooklib TOC, depth first."""
    for item in items:
        if isinstance(item, (tuple, list)):
            yield item[0]
            yield from _toc_nodes(item[1] or [])
        elif isinstance(item, (epub.Link, epub.Section)):
            yield item
