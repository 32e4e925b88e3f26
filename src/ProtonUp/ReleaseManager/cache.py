"""Persisted, size-bounded metadata cache.

The cache behaves as a set of records keyed by identity: inserting a record
whose identity already exists replaces it, so re-inserting a release after its
``installed_in`` field was set is how install state gets recorded.  Every
mutation rewrites the whole backing file, trimming the collection to its
capacity by discarding the oldest records first.

The cache is best effort.  A missing or corrupt file starts an empty cache, and
it is never the source of truth for what actually sits in an install directory.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generic, Hashable, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import ArtifactIOError, ConfigurationError
from .models import Release

__all__ = ["BoundedMetadataCache", "write_json_atomic"]

logger = logging.getLogger(__name__)


T = TypeVar("T", bound=BaseModel)


def write_json_atomic(path: Path, payload: object) -> Path:
    """Atomically persist ``payload`` as JSON to ``path``."""

    resolved = path.expanduser()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=str(resolved.parent), delete=False
    ) as handle:
        json.dump(payload, handle, indent=2)
        handle.flush()
        try:
            os.fsync(handle.fileno())
        except (AttributeError, OSError):
            pass
        temp_name = handle.name
    Path(temp_name).replace(resolved)
    return resolved


class BoundedMetadataCache(Generic[T]):
    """Set-like store of records, persisted to ``path`` and capped at ``capacity``.

    Attributes:
        path: JSON file the collection is persisted to.
        capacity: Maximum number of records kept after each save.

    Examples:
        >>> cache = BoundedMetadataCache(Path("/tmp/pup-doc/releases.json"), 2)  # doctest: +SKIP
        >>> cache.add(Release(tag_name="GE-Proton7-51"))  # doctest: +SKIP
        >>> [release.tag_name for release in cache.query()]  # doctest: +SKIP
        ['GE-Proton7-51']
    """

    def __init__(self, path: Path, capacity: int, *, model: Type[T] = Release) -> None:  # type: ignore[assignment]
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise ConfigurationError(f"Cache capacity must be a positive integer, got {capacity!r}")
        self.path = Path(path).expanduser()
        self.capacity = capacity
        self._model = model
        self._records: Dict[Hashable, T] = {}
        for record in self._load():
            self._records[record.identity] = record  # type: ignore[attr-defined]
        if len(self._records) > capacity:
            logger.debug(
                "metadata cache over capacity on load",
                extra={
                    "stage": "cache",
                    "cache": str(self.path),
                    "records": len(self._records),
                    "capacity": capacity,
                },
            )
            kept = self._sorted(self._records.values())[:capacity]
            self._records = {record.identity: record for record in kept}  # type: ignore[attr-defined]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, item: object) -> bool:
        identity = getattr(item, "identity", None)
        return identity is not None and identity in self._records

    def _load(self) -> List[T]:
        if not self.path.exists():
            logger.debug("metadata cache file missing", extra={"stage": "cache", "cache": str(self.path)})
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as exc:
            logger.warning(
                "metadata cache unreadable, starting empty",
                extra={"stage": "cache", "cache": str(self.path), "error": str(exc)},
            )
            return []
        if not isinstance(raw, list):
            logger.warning(
                "metadata cache is not a list, starting empty",
                extra={"stage": "cache", "cache": str(self.path)},
            )
            return []
        try:
            return [self._model.model_validate(entry) for entry in raw]
        except PydanticValidationError as exc:
            logger.warning(
                "metadata cache contains invalid records, starting empty",
                extra={"stage": "cache", "cache": str(self.path), "error": str(exc)},
            )
            return []

    def _sorted(self, records: Iterable[T]) -> List[T]:
        return sorted(records, key=lambda record: record.sort_key(), reverse=True)  # type: ignore[attr-defined]

    def _merge(self, items: Iterable[T]) -> None:
        for item in items:
            self._records[item.identity] = item  # type: ignore[attr-defined]

    def save(self) -> None:
        """Trim to capacity (newest first) and rewrite the backing file."""

        ordered = self._sorted(self._records.values())
        if len(ordered) > self.capacity:
            dropped = len(ordered) - self.capacity
            ordered = ordered[: self.capacity]
            self._records = {record.identity: record for record in ordered}  # type: ignore[attr-defined]
            logger.debug(
                "metadata cache trimmed",
                extra={"stage": "cache", "dropped": dropped, "capacity": self.capacity},
            )
        payload = [record.model_dump(mode="json") for record in ordered]
        try:
            write_json_atomic(self.path, payload)
        except OSError as exc:
            raise ArtifactIOError(f"Failed to persist metadata cache {self.path}: {exc}") from exc

    def add(self, item: T) -> None:
        """Insert ``item``, replacing any record with the same identity, then save."""

        self._merge([item])
        self.save()

    def add_range(self, items: Iterable[T]) -> None:
        """Union ``items`` into the cache (colliding identities replace), then save."""

        self._merge(items)
        self.save()

    def upsert(self, item: T) -> None:
        """Replace the record sharing ``item``'s identity (or insert it), then save."""

        self.add(item)

    def get(self, identity: Hashable) -> Optional[T]:
        return self._records.get(identity)

    def query(self) -> List[T]:
        """Return all records, newest first."""

        return self._sorted(self._records.values())

    def filter(self, predicate: Callable[[T], bool]) -> List[T]:
        """Return the records matching ``predicate``, newest first."""

        return [record for record in self.query() if predicate(record)]
