"""Document translation pipeline.

One task walks the document's blocks strictly in order. Each block is looked
up in the task's progress map, then in the shared cache, and only then sent to
the translation service. The progress map is persisted when the task is paused
or cancelled, periodically while it runs, and once it completes, so a later
call with the same task id resumes without spending provider calls twice.
"""
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

from rich.console import Console

from .cache import HybridCache, cache_key, validate_task_id
from .config import GENERATE_MODES, ProviderConfig
from .document import Document, MetadataCapable, open_document, validate_input
from .errors import DocumentError, EmptyDocumentError, InputValidationError, ProgressError
from .languages import LANG_NAMES, lang_label
from .services import get_service
from .services.base import BaseTranslationService


class TaskState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskControl:
    """Cooperative status token checked before every block.

    Pausing or cancelling never interrupts a provider call already in flight;
    the task stops at the next block boundary.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._status = TaskState.RUNNING

    @property
    def status(self) -> TaskState:
        with self._lock:
            return self._status

    def pause(self) -> None:
        self._set(TaskState.PAUSED)

    def cancel(self) -> None:
        self._set(TaskState.CANCELLED)

    def resume(self) -> None:
        self._set(TaskState.RUNNING)

    def _set(self, status: TaskState) -> None:
        with self._lock:
            self._status = status

    def __call__(self) -> str:
        return self.status.value


StatusSource = Union[TaskControl, Callable[[], str]]
ProgressCallback = Callable[[float], None]


@dataclass
class TaskResult:
    """Outcome of one translate_document call that did not fail."""

    task_id: str
    state: TaskState
    output_path: Optional[str] = None
    translations: Dict[str, str] = field(default_factory=dict)
    translated_count: int = 0
    cached_count: int = 0
    failed_blocks: List[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.state is TaskState.COMPLETED

    @property
    def paused(self) -> bool:
        return self.state is TaskState.PAUSED


class DocumentTranslator:
    """Orchestrates document translation through a cache and a translation service."""

    def __init__(
        self,
        service: BaseTranslationService,
        cache: HybridCache,
        console: Optional[Console] = None,
        checkpoint_interval: int = 25,
        opener: Callable[[str], Document] = open_document,
    ):
        """Initialize the translator.

        Args:
            service: Translation client used for cache misses
            cache: Cache shared with other tasks; also stores progress snapshots
            console: Console for status output (defaults to stderr)
            checkpoint_interval: Persist progress after this many new translations (0 disables)
            opener: Function opening a document from a path
        """
        self.service = service
        self.cache = cache
        self.console = console or Console(stderr=True)
        self.checkpoint_interval = max(0, int(checkpoint_interval))
        self.opener = opener

    @classmethod
    def from_config(cls, config: ProviderConfig, cache: HybridCache, **kwargs) -> "DocumentTranslator":
        return cls(get_service(config), cache, **kwargs)

    def translate_document(
        self,
        task_id: str,
        input_path: str,
        output_path: str,
        target_lang: str,
        instruction: str = "",
        mode: str = "bilingual",
        progress_callback: Optional[ProgressCallback] = None,
        control: Optional[StatusSource] = None,
        force_retranslate: bool = False,
    ) -> TaskResult:
        """Translate a document, resuming from any saved progress for ``task_id``.

        Steps:
        1. Validate inputs and open the document
        2. Load the task's progress snapshot
        3. Translate blocks in order (progress map, then cache, then service)
        4. Insert translations in bilingual or monolingual form
        5. Translate metadata and TOC labels (best effort)
        6. Save the output document

        Args:
            task_id: Identifier of the task; reuse it to resume
            input_path: Source document
            output_path: Destination document
            target_lang: Target language code or name
            instruction: Optional instruction passed to the service
            mode: 'bilingual' or 'monolingual'
            progress_callback: Receives (index + 1) / total after each new translation
            control: TaskControl or callable returning 'running', 'paused' or 'cancelled'
            force_retranslate: Ignore the progress snapshot and cached translations

        Returns:
            TaskResult with state COMPLETED, PAUSED or CANCELLED

        Raises:
            InputValidationError: Bad inputs, raised before any work
            DocumentError: The document could not be opened, modified or saved
            EmptyDocumentError: The document has no translatable text
        """
        validate_input(input_path, output_path, target_lang)
        validate_task_id(task_id)
        if mode not in GENERATE_MODES:
            raise InputValidationError(f"Unknown mode '{mode}'. Use one of: {', '.join(GENERATE_MODES)}")

        self.console.print(f"[cyan]Loading document:[/cyan] {input_path}")
        document = self.opener(input_path)

        blocks = document.extract_blocks()
        if not blocks:
            raise EmptyDocumentError(f"No translatable text found in {input_path}")
        total = len(blocks)

        self.console.print(f"[cyan]Found {total} text blocks[/cyan]")
        self.console.print(f"[cyan]Target language:[/cyan] {lang_label(target_lang)}")
        self.console.print(f"[cyan]Service:[/cyan] {self.service.name()}")
        self.console.print(f"[cyan]Mode:[/cyan] {mode}")

        translations: Dict[str, str] = {}
        if force_retranslate:
            self.console.print("[cyan]Force retranslate:[/cyan] ignoring saved progress and cache")
        else:
            translations = self._load_progress(task_id)

        result = TaskResult(task_id=task_id, state=TaskState.RUNNING, translations=translations)
        failed = set()

        for index, block in enumerate(blocks):
            status = self._poll(control)
            if status in (TaskState.PAUSED, TaskState.CANCELLED):
                self._save_progress(task_id, translations)
                self.console.print(
                    f"[yellow]Task {task_id} {status.value} before block {index + 1}/{total}; "
                    f"{len(translations)} translations saved[/yellow]"
                )
                result.state = status
                result.failed_blocks = sorted(failed)
                return result

            if not block or block in translations or block in failed:
                continue

            key = cache_key(block, target_lang, instruction)
            if not force_retranslate:
                cached, found = self.cache.get(key)
                if found:
                    translations[block] = cached
                    result.cached_count += 1
                    continue

            try:
                translated = self.service.translate(block, target_lang, instruction)
            except Exception as e:
                # Left out of the map and the cache so a later pass retries it.
                self.console.print(
                    f"[yellow]Warning: Failed to translate block {index + 1}/{total}: {e}[/yellow]"
                )
                failed.add(block)
                continue

            translations[block] = translated
            self.cache.set(key, translated)
            result.translated_count += 1

            if progress_callback is not None:
                progress_callback((index + 1) / total)

            if self.checkpoint_interval and result.translated_count % self.checkpoint_interval == 0:
                self._save_progress(task_id, translations)

        result.failed_blocks = sorted(failed)

        if mode == "monolingual":
            self._insert(document.insert_monolingual, translations, mode)
        else:
            self._insert(document.insert_bilingual, translations, mode)

        if isinstance(document, MetadataCapable):
            self._translate_extras(document, target_lang, instruction)

        self.console.print(f"[cyan]Saving translated document to:[/cyan] {output_path}")
        try:
            document.save(output_path)
        except DocumentError:
            raise
        except Exception as e:
            raise DocumentError(f"Failed to save document: {e}") from e

        self._save_progress(task_id, translations)

        result.state = TaskState.COMPLETED
        result.output_path = output_path
        self.console.print(
            f"[cyan]Summary:[/cyan] translated={result.translated_count}, "
            f"cached={result.cached_count}, failed={len(result.failed_blocks)}, total={total}"
        )
        self.console.print("[green]✓ Translation complete![/green]")
        return result

    def translate_text(self, text: str, target_lang: str, instruction: str = "") -> str:
        """Translate one text through the cache.

        Raises:
            TranslationError: If the service fails
        """
        if not text or not text.strip():
            return text

        key = cache_key(text, target_lang, instruction)
        cached, found = self.cache.get(key)
        if found:
            return cached

        translated = self.service.translate(text, target_lang, instruction)
        self.cache.set(key, translated)
        return translated

    def batch_translate(self, texts: List[str], target_lang: str, instruction: str = "") -> List[str]:
        """Translate texts one by one; a failed text is returned unchanged."""
        results = []
        for i, text in enumerate(texts):
            if not text:
                results.append("")
                continue
            try:
                results.append(self.translate_text(text, target_lang, instruction))
            except Exception as e:
                self.console.print(f"[yellow]Warning: Failed to translate text {i + 1}: {e}[/yellow]")
                results.append(text)
        return results

    # --- internals ---

    @staticmethod
    def _poll(control: Optional[StatusSource]) -> TaskState:
        if control is None:
            return TaskState.RUNNING
        raw = control()
        try:
            return TaskState(str(getattr(raw, "value", raw)).lower())
        except ValueError:
            return TaskState.RUNNING

    def _load_progress(self, task_id: str) -> Dict[str, str]:
        try:
            saved = self.cache.load_progress(task_id)
        except ProgressError as e:
            self.console.print(f"[yellow]Warning: {e}; starting from scratch[/yellow]")
            return {}
        if not saved:
            return {}
        saved = {k: v for k, v in saved.items() if k}
        self.console.print(f"[cyan]Resuming task {task_id}:[/cyan] {len(saved)} saved translations")
        return saved

    def _save_progress(self, task_id: str, translations: Dict[str, str]) -> None:
        try:
            self.cache.save_progress(task_id, translations)
        except ProgressError as e:
            self.console.print(f"[red]{e}[/red]")

    @staticmethod
    def _insert(insert: Callable[[Dict[str, str]], None], translations: Dict[str, str], mode: str) -> None:
        try:
            insert(translations)
        except DocumentError:
            raise
        except Exception as e:
            raise DocumentError(f"Failed to insert {mode} translations: {e}") from e

    def _translate_extras(self, document: MetadataCapable, target_lang: str, instruction: str) -> None:
        """Translate metadata and TOC labels. Failures are logged, never raised."""

        def translate_single(text: str) -> str:
            try:
                return self.translate_text(text, target_lang, instruction)
            except Exception as e:
                self.console.print(f"[yellow]Warning: Failed to translate '{text}': {e}[/yellow]")
                return text

        try:
            self.console.print("[cyan]Translating book metadata...[/cyan]")
            translated_meta = document.translate_metadata(translate_single)
            for field_name, pairs in translated_meta.items():
                for original, translated in pairs:
                    self.console.print(f"  [dim]{field_name}:[/dim] {original} → {translated}")
            if target_lang.lower() in LANG_NAMES:
                document.set_language(target_lang.lower())
        except Exception as e:
            self.console.print(f"[yellow]Warning: Metadata translation failed: {e}[/yellow]")

        try:
            self.console.print("[cyan]Translating table of contents...[/cyan]")
            document.translate_toc(translate_single)
        except Exception as e:
            self.console.print(f"[yellow]Warning: Table of contents translation failed: {e}[/yellow]")
