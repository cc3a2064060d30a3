"""
Saved searches store.

Bounded, newest-first list of AnalysisResult records persisted as one
JSON blob under a fixed key of a key-value storage.

Blob shape:
    {"searches": [AnalysisResult, ...]}
"""

from __future__ import annotations

import json
import os
import tempfile
from collections import deque
from pathlib import Path
from typing import Deque, Dict, List, Optional, Protocol, Union, runtime_checkable

import structlog
from pydantic import ValidationError as PydanticValidationError

from safemom.domain.analysis.models import AnalysisResult
from safemom.domain.shared.errors import StorageError, ValidationError

logger = structlog.get_logger(__name__)

STORAGE_KEY = "savedSearches"
MAX_SAVED_SEARCHES = 10


# ═══════════════════════════════════════════════════════════
# KEY-VALUE STORAGE
# ═══════════════════════════════════════════════════════════


@runtime_checkable
class KeyValueStorage(Protocol):
    """String key-value storage (localStorage-like)."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class InMemoryStorage:
    """Process-local storage, used in tests and one-shot sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """
    File-backed storage: one JSON object mapping keys to string values.

    Writes go through a temp file in the same directory and
    ``os.replace``, so readers never see a half-written file.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("storage_read_failed", path=str(self.path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            return {}
        return {k: v for k, v in raw.items() if isinstance(v, str)}

    def _write_all(self, items: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if key in items:
            del items[key]
            self._write_all(items)


# ═══════════════════════════════════════════════════════════
# SAVED SEARCHES
# ═══════════════════════════════════════════════════════════


class SavedSearchStore:
    """
    Ring buffer of saved analyses.

    Implements ISearchStore. Saving beyond capacity evicts the oldest
    entry. Every mutation rewrites the whole blob.

    Example:
        >>> store = SavedSearchStore(InMemoryStorage())
        >>> store.save(result)
        >>> store.list()[0].id == result.id
        True
    """

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        capacity: int = MAX_SAVED_SEARCHES,
        key: str = STORAGE_KEY,
    ) -> None:
        if capacity < 1:
            raise ValidationError(f"capacity must be >= 1, got {capacity}")

        self._storage = storage if storage is not None else InMemoryStorage()
        self.capacity = capacity
        self.key = key

    def _load(self) -> Deque[AnalysisResult]:
        searches: Deque[AnalysisResult] = deque(maxlen=self.capacity)

        raw = self._storage.get_item(self.key)
        if not raw:
            return searches

        try:
            payload = json.loads(raw)
        except (ValueError, TypeError) as e:
            logger.error("saved_searches_corrupted", key=self.key, error=str(e))
            return searches

        records = payload.get("searches") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            logger.error("saved_searches_corrupted", key=self.key, error="unexpected shape")
            return searches

        # Invalid records are skipped; the valid ones survive the next write.
        for index, record in enumerate(records):
            if len(searches) == self.capacity:
                break
            try:
                searches.append(AnalysisResult.model_validate(record))
            except PydanticValidationError as e:
                logger.warning(
                    "saved_search_skipped",
                    key=self.key,
                    index=index,
                    error=str(e),
                )

        return searches

    def _store(self, searches: Deque[AnalysisResult]) -> None:
        blob = json.dumps({"searches": [r.to_dict() for r in searches]})
        self._storage.set_item(self.key, blob)

    def save(self, result: AnalysisResult) -> None:
        """Insert a result at the front, evicting the oldest when full."""
        searches = self._load()
        evicted = searches[-1] if len(searches) == self.capacity else None
        searches.appendleft(result)
        self._store(searches)

        logger.info(
            "search_saved",
            id=result.id,
            product=result.product,
            evicted=evicted.id if evicted else None,
        )

    def list(self) -> List[AnalysisResult]:
        """All saved results, newest first."""
        return list(self._load())

    def get(self, result_id: str) -> Optional[AnalysisResult]:
        """Saved result by id, or None."""
        for result in self._load():
            if result.id == result_id:
                return result
        return None

    def delete(self, result_id: str) -> bool:
        """Remove a result by id. Returns True if it existed."""
        searches = self._load()
        kept = deque((r for r in searches if r.id != result_id), maxlen=self.capacity)
        if len(kept) == len(searches):
            return False
        self._store(kept)
        logger.info("search_deleted", id=result_id)
        return True

    def clear(self) -> None:
        """Remove every saved result."""
        self._store(deque(maxlen=self.capacity))
        logger.info("searches_cleared")

    def __len__(self) -> int:
        return len(self._load())
