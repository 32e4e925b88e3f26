"""Progress events emitted while acquiring and installing artifacts.

Pipeline components never reach for a global logging facility to report
progress; they call an injectable observer with a :class:`FetchEvent`.  The
default observer forwards events to the package logger, tests pass a list's
``append`` to capture them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional

__all__ = ["EventKind", "FetchEvent", "Observer", "logging_observer"]


class EventKind(str, Enum):
    """Stages of an acquisition or install that observers may react to."""

    CACHE_HIT = "cache-hit"
    CACHE_MISS = "cache-miss"
    DOWNLOAD_START = "download-start"
    DOWNLOAD_COMPLETE = "download-complete"
    VERIFICATION_PASSED = "verification-passed"
    VERIFICATION_FAILED = "verification-failed"
    VERIFICATION_SKIPPED = "verification-skipped"
    FILE_REMOVED = "file-removed"
    EXTRACTED = "extracted"
    CACHE_UPDATED = "cache-updated"


@dataclass(slots=True, frozen=True)
class FetchEvent:
    """Single progress notification."""

    kind: EventKind
    path: Optional[str] = None
    url: Optional[str] = None
    details: Dict[str, object] = field(default_factory=dict)


Observer = Callable[[FetchEvent], None]

_LEVELS: Dict[EventKind, int] = {
    EventKind.VERIFICATION_FAILED: logging.ERROR,
    EventKind.VERIFICATION_SKIPPED: logging.WARNING,
    EventKind.CACHE_HIT: logging.INFO,
    EventKind.DOWNLOAD_START: logging.INFO,
    EventKind.VERIFICATION_PASSED: logging.INFO,
    EventKind.EXTRACTED: logging.INFO,
}


def logging_observer(logger: Optional[logging.Logger] = None) -> Observer:
    """Return an observer that writes each event to ``logger``."""

    target = logger or logging.getLogger("ProtonUp.ReleaseManager")

    def _observe(event: FetchEvent) -> None:
        target.log(
            _LEVELS.get(event.kind, logging.DEBUG),
            event.kind.value,
            extra={"stage": event.kind.value, "path": event.path, "url": event.url, **event.details},
        )

    return _observe
