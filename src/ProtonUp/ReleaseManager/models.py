"""Release and asset records returned by the registry and persisted in the cache.

A :class:`Release` is identified by its ``(tag_name, published_at)`` pair.  Two
records with the same identity are the same cache entry even when their asset
lists differ, which is what lets the metadata cache record install state by
re-inserting a release whose ``installed_in`` field has been set.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["Asset", "Release"]


def _timestamp(value: Optional[datetime]) -> float:
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


class Asset(BaseModel):
    """Downloadable file attached to a release."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    browser_download_url: str
    updated_at: Optional[datetime] = None

    @property
    def filename(self) -> str:
        """Return the last path segment of the download URL.

        This is the identity the artifact has inside the download cache, so two
        releases only share a cached file when their URLs end the same way.
        """

        segment = PurePosixPath(unquote(urlparse(self.browser_download_url).path)).name
        return segment or self.name

    @property
    def base_name(self) -> str:
        """Return the asset name up to (not including) the first ``.``."""

        return self.name.split(".", 1)[0]


class Release(BaseModel):
    """Release metadata with an optional record of where it was installed."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    name: Optional[str] = None
    tag_name: str
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    assets: List[Asset] = Field(default_factory=list)
    installed_in: Optional[Path] = None

    @property
    def identity(self) -> Tuple[str, bool, float]:
        """Hashable ``(tag, published_at)`` key, normalised across timezones."""

        return (self.tag_name, self.published_at is None, _timestamp(self.published_at))

    @property
    def is_installed(self) -> bool:
        return self.installed_in is not None and str(self.installed_in) != ""

    def sort_key(self) -> Tuple[bool, float, str]:
        """Ordering key; releases without a publish date sort as the oldest."""

        return (self.published_at is not None, _timestamp(self.published_at), self.tag_name)

    def mark_installed(self, path: Path) -> "Release":
        self.installed_in = Path(path)
        return self

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Release):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __lt__(self, other: "Release") -> bool:
        if not isinstance(other, Release):
            return NotImplemented
        return self.sort_key() < other.sort_key()
