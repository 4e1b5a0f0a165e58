"""Extract translatable text from XHTML and write translations back in place."""

from typing import Dict, Iterator, List, NamedTuple, Tuple

from lxml import etree


class TextSlot(NamedTuple):
    """One text position in the tree: an element's ``text`` or its ``tail``."""

    element: etree._Element
    attr: str

    @property
    def raw(self) -> str:
        return getattr(self.element, self.attr) or ''

    @property
    def text(self) -> str:
        return self.raw.strip()

    def replace(self, new_text: str) -> None:
        """Swap the stripped text, keeping the surrounding whitespace."""
        raw = self.raw
        leading_ws = raw[:len(raw) - len(raw.lstrip())]
        trailing_ws = raw[len(raw.rstrip()):]
        setattr(self.element, self.attr, leading_ws + new_text + trailing_ws)


class TextExtractor:
    """
    Locate the text nodes of an XHTML document that should be translated.

    Text inside code, pre, script and style elements is left alone, as are
    comments and processing instructions. Whitespace-only nodes are not
    translatable blocks.
    """

    NO_TRANSLATE_TAGS = {'code', 'pre', 'script', 'style'}

    # Separator between source and translation in bilingual output
    BILINGUAL_SEPARATOR = "\n\n"

    def __init__(self):
        self.parser = etree.HTMLParser(encoding='utf-8')

    def parse(self, xhtml_content: bytes) -> etree._Element:
        return etree.fromstring(xhtml_content, self.parser)

    def iter_slots(self, tree: etree._Element) -> Iterator[TextSlot]:
        """Yield translatable text slots in document order."""
        yield from self._walk(tree, False)

    def _walk(self, element, in_no_translate: bool) -> Iterator[TextSlot]:
        tag = etree.QName(element).localname.lower()
        skip = in_no_translate or tag in self.NO_TRANSLATE_TAGS

        if not skip and element.text and element.text.strip():
            yield TextSlot(element, 'text')

        for child in element:
            if isinstance(child.tag, str):
                yield from self._walk(child, skip)
            if not skip and child.tail and child.tail.strip():
                yield TextSlot(child, 'tail')

    def extract_texts(self, xhtml_content: bytes) -> Tuple[List[str], etree._Element]:
        """
        Extract translatable text segments from XHTML content.

        Args:
            xhtml_content: XHTML content as bytes

        Returns:
            Tuple of (stripped text segments in document order, parsed tree).
            Keep the tree: translations are written back into it.
        """
        tree = self.parse(xhtml_content)
        return [slot.text for slot in self.iter_slots(tree)], tree

    def apply_translations(
        self,
        tree: etree._Element,
        translations: Dict[str, str],
        bilingual: bool = False,
    ) -> int:
        """Write translations into the tree.

        Slots whose text is not a key of ``translations`` keep the source.

        Args:
            tree: Parsed tree from extract_texts
            translations: Mapping of source segment to translated segment
            bilingual: Keep the source and append the translation after it

        Returns:
            Number of slots that were changed
        """
        # Materialize first: replacing text while walking would re-read new values.
        slots = list(self.iter_slots(tree))
        changed = 0
        for slot in slots:
            original = slot.text
            translated = translations.get(original)
            if translated is None:
                continue
            if bilingual:
                slot.replace(f"{original}{self.BILINGUAL_SEPARATOR}{translated}")
            else:
                slot.replace(translated)
            changed += 1
        return changed

    @staticmethod
    def serialize(tree: etree._Element) -> bytes:
        return etree.tostring(tree, encoding='utf-8', method='html', pretty_print=False)
