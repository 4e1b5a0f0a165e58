"""Two-tier translation cache with durable progress snapshots.

Translations are kept in an in-memory table guarded by a reader/writer lock
and mirrored to one JSON file per entry under the cache directory. Entries are
keyed by a SHA-256 digest of (source text, target language, instruction).
The same directory also holds per-task progress snapshots used to resume an
interrupted translation.
"""

import hashlib
import json
import os
import queue
import re
import tempfile
import threading
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from rich.console import Console

from .errors import InputValidationError, ProgressError


DEFAULT_TTL = timedelta(days=7)
SWEEP_INTERVAL_SECONDS = 12 * 60 * 60
KEY_SEPARATOR = "|"

_ENTRY_NAME_RE = re.compile(r'^[0-9a-f]{64}$')
_TASK_ID_RE = re.compile(r'^[A-Za-z0-9._-]+$')


def cache_key(text: str, target_lang: str, instruction: str = "") -> str:
    """Build the cache fingerprint for a translation request.

    Args:
        text: Source text
        target_lang: Target language code or name
        instruction: Caller-supplied instruction override ('' for none)

    Returns:
        64-character hexadecimal SHA-256 digest
    """
    data = KEY_SEPARATOR.join((text, target_lang, instruction or ""))
    return hashlib.sha256(data.encode('utf-8')).hexdigest()


def validate_task_id(task_id: str) -> str:
    """Reject task ids that are empty or could name a path outside the cache directory.

    Raises:
        InputValidationError: If the id has characters other than letters, digits, '.', '-' or '_'
    """
    if not task_id or not _TASK_ID_RE.match(task_id):
        raise InputValidationError(
            f"Invalid task id '{task_id}': use letters, digits, '.', '-' or '_'"
        )
    return task_id


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    """A cached translation and the moment it stops being valid."""

    value: str
    expire_time: datetime

    def expired(self, now: Optional[datetime] = None) -> bool:
        return (now or _now()) > self.expire_time

    def to_json(self) -> str:
        return json.dumps(
            {"value": self.value, "expire_time": self.expire_time.isoformat()},
            ensure_ascii=False,
        )

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        data = json.loads(raw)
        value = data["value"]
        if not isinstance(value, str):
            raise ValueError(f"cache entry value must be a string, got {type(value).__name__}")
        expire_time = datetime.fromisoformat(data["expire_time"])
        if expire_time.tzinfo is None:
            expire_time = expire_time.replace(tzinfo=timezone.utc)
        return cls(value=value, expire_time=expire_time)


class _ReadWriteLock:
    """Many concurrent readers or one writer; waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class HybridCache:
    """Thread-safe in-memory + on-disk translation cache.

    Reads consult memory first and fall back to disk, backfilling memory on a
    disk hit. Writes update memory synchronously and hand the durable write to
    a small pool of persistence workers fed by a bounded queue, so ``set``
    never waits on disk latency unless the queue is full. Expired memory
    entries are removed by a periodic sweep; disk entries are only removed by
    an explicit ``prune_disk`` call.
    """

    def __init__(
        self,
        cache_dir: Union[str, Path],
        ttl: timedelta = DEFAULT_TTL,
        sweep_interval: Optional[float] = SWEEP_INTERVAL_SECONDS,
        writers: int = 2,
        queue_size: int = 1024,
        console: Optional[Console] = None,
    ):
        """Initialize the cache and start its background threads.

        Args:
            cache_dir: Directory holding entry files and progress snapshots
            ttl: Lifetime of an entry from the moment it is set
            sweep_interval: Seconds between memory sweeps (None disables the sweeper)
            writers: Number of persistence worker threads
            queue_size: Maximum number of durable writes waiting for a worker
            console: Console used for warnings (defaults to stderr)
        """
        self.cache_dir = Path(cache_dir).expanduser()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self.console = console or Console(stderr=True)

        self._entries: Dict[str, CacheEntry] = {}
        self._lock = _ReadWriteLock()

        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

        self._closed = False
        self._stop = threading.Event()
        self._pending: "queue.Queue[Optional[Tuple[str, CacheEntry]]]" = queue.Queue(maxsize=queue_size)
        self._workers = [
            threading.Thread(target=self._persist_loop, name=f"etrans-cache-writer-{i}", daemon=True)
            for i in range(max(1, int(writers)))
        ]
        for worker in self._workers:
            worker.start()

        self._sweeper = None
        if sweep_interval:
            self._sweeper = threading.Thread(target=self._sweep_loop, name="etrans-cache-sweeper", daemon=True)
            self._sweeper.start()

    def __enter__(self) -> "HybridCache":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # --- entries ---

    def get(self, key: str) -> Tuple[str, bool]:
        """Look up a cached translation.

        Args:
            key: Fingerprint from :func:`cache_key`

        Returns:
            Tuple of (value, found). ``value`` is '' when not found.
        """
        with self._lock.read():
            entry = self._entries.get(key)

        if entry is None:
            entry = self._read_entry(key)
            if entry is not None and not entry.expired():
                with self._lock.write():
                    self._entries[key] = entry

        if entry is None or entry.expired():
            self._count(hit=False)
            return "", False

        self._count(hit=True)
        return entry.value, True

    def set(self, key: str, value: str, ttl: Optional[timedelta] = None) -> None:
        """Store a translation.

        The memory tier is updated before returning. The disk write happens
        later on a persistence worker; its failure is logged, never raised.

        Args:
            key: Fingerprint from :func:`cache_key`
            value: Translated text
            ttl: Override for the entry lifetime (negative yields an expired entry)
        """
        entry = CacheEntry(value=value, expire_time=_now() + (self.ttl if ttl is None else ttl))
        with self._lock.write():
            self._entries[key] = entry

        if self._closed:
            self._write_entry(key, entry)
        else:
            self._pending.put((key, entry))

    def sweep(self) -> int:
        """Remove expired entries from memory and return how many were dropped."""
        now = _now()
        with self._lock.write():
            expired = [key for key, entry in self._entries.items() if entry.expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def prune_disk(self) -> int:
        """Delete expired or unreadable entry files. Progress snapshots are kept."""
        self.flush()
        now = _now()
        removed = 0
        for path in self._entry_files():
            try:
                entry = CacheEntry.from_json(path.read_text(encoding='utf-8'))
            except (OSError, ValueError, KeyError, TypeError):
                entry = None
            if entry is None or entry.expired(now):
                with suppress(FileNotFoundError):
                    path.unlink()
                    removed += 1
        return removed

    def clear(self) -> None:
        """Drop every cached translation from both tiers and reset statistics."""
        self.flush()
        with self._lock.write():
            self._entries.clear()
        for path in self._entry_files():
            with suppress(FileNotFoundError):
                path.unlink()
        with self._stats_lock:
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict:
        """Get cache statistics.

        Returns:
            Dictionary containing memory_entries, disk_entries, hits, misses
            and hit_rate (0.0 to 1.0)
        """
        with self._lock.read():
            memory_entries = len(self._entries)
        with self._stats_lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        return {
            'memory_entries': memory_entries,
            'disk_entries': sum(1 for _ in self._entry_files()),
            'hits': hits,
            'misses': misses,
            'hit_rate': hits / total if total > 0 else 0.0,
        }

    def flush(self) -> None:
        """Block until every queued durable write has been attempted."""
        if not self._closed:
            self._pending.join()

    def close(self) -> None:
        """Drain pending writes and stop the background threads."""
        if self._closed:
            return
        for _ in self._workers:
            self._pending.put(None)
        for worker in self._workers:
            worker.join()
        self._closed = True
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join()

    # --- progress snapshots ---

    def save_progress(self, task_id: str, mapping: Dict[str, str]) -> None:
        """Persist a task's progress map, replacing any earlier snapshot.

        Raises:
            ProgressError: If the snapshot cannot be written
        """
        path = self._progress_path(task_id)
        try:
            self._atomic_write(path, json.dumps(mapping, ensure_ascii=False, indent=2))
        except OSError as e:
            raise ProgressError(f"Failed to save progress for task '{task_id}': {e}") from e

    def load_progress(self, task_id: str) -> Optional[Dict[str, str]]:
        """Load a task's progress map.

        Returns:
            The saved mapping, or None if the task has no snapshot yet

        Raises:
            ProgressError: If the snapshot exists but is unreadable or corrupt
        """
        path = self._progress_path(task_id)
        try:
            raw = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ProgressError(f"Failed to read progress for task '{task_id}': {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ProgressError(f"Corrupt progress snapshot for task '{task_id}': {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise ProgressError(f"Corrupt progress snapshot for task '{task_id}': expected a string mapping")
        return data

    def delete_progress(self, task_id: str) -> bool:
        """Remove a task's snapshot. Returns True if one existed."""
        try:
            self._progress_path(task_id).unlink()
            return True
        except FileNotFoundError:
            return False

    # --- internals ---

    def _count(self, hit: bool) -> None:
        with self._stats_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    def _entry_path(self, key: str) -> Path:
        return self.cache_dir / key

    def _entry_files(self):
        return (p for p in self.cache_dir.iterdir() if _ENTRY_NAME_RE.match(p.name))

    def _progress_path(self, task_id: str) -> Path:
        return self.cache_dir / f"progress_{validate_task_id(task_id)}.json"

    def _read_entry(self, key: str) -> Optional[CacheEntry]:
        try:
            return CacheEntry.from_json(self._entry_path(key).read_text(encoding='utf-8'))
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError):
            # Unreadable entries count as misses; prune_disk removes them.
            return None

    def _write_entry(self, key: str, entry: CacheEntry) -> None:
        try:
            self._atomic_write(self._entry_path(key), entry.to_json())
        except OSError as e:
            self.console.print(f"[yellow]Warning: Failed to persist cache entry {key[:12]}: {e}[/yellow]")

    def _atomic_write(self, path: Path, text: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp-")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            with suppress(OSError):
                os.unlink(tmp_name)
            raise

    def _persist_loop(self) -> None:
        while True:
            item = self._pending.get()
            try:
                if item is None:
                    return
                self._write_entry(*item)
            finally:
                self._pending.task_done()

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            removed = self.sweep()
            if removed:
                self.console.print(f"[dim]Cache sweep removed {removed} expired entries[/dim]")
