"""Tests for the persisted, capacity-bounded metadata cache."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from conftest import make_release

from ProtonUp.ReleaseManager.cache import BoundedMetadataCache
from ProtonUp.ReleaseManager.errors import ConfigurationError


class TestCapacity:
    """Capacity is enforced on every save, newest records win."""

    def test_keeps_newest_entries(self, tmp_path: Path) -> None:
        cache = BoundedMetadataCache(tmp_path / "releases.json", 3)

        cache.add_range([make_release(f"r{day}", day) for day in range(1, 7)])

        assert len(cache) == 3
        assert [release.tag_name for release in cache.query()] == ["r6", "r5", "r4"]

    def test_persisted_file_is_trimmed(self, tmp_path: Path) -> None:
        path = tmp_path / "releases.json"
        cache = BoundedMetadataCache(path, 2)

        for day in range(1, 5):
            cache.add(make_release(f"r{day}", day))

        stored = json.loads(path.read_text(encoding="utf-8"))
        assert [entry["tag_name"] for entry in stored] == ["r4", "r3"]

    def test_same_day_tie_keeps_later_tag(self, tmp_path: Path) -> None:
        cache = BoundedMetadataCache(tmp_path / "releases.json", 1)

        cache.add_range([make_release("a", 5), make_release("b", 5)])

        assert [release.tag_name for release in cache.query()] == ["b"]

    def test_oversized_file_is_trimmed_on_load(self, tmp_path: Path) -> None:
        path = tmp_path / "releases.json"
        BoundedMetadataCache(path, 5).add_range([make_release(f"r{day}", day) for day in range(1, 5)])

        reopened = BoundedMetadataCache(path, 2)

        assert len(reopened) == 2
        assert [release.tag_name for release in reopened.query()] == ["r4", "r3"]
        assert make_release("r1", 1) not in reopened

    @pytest.mark.parametrize("capacity", [0, -1, True, 1.5])
    def test_rejects_invalid_capacity(self, tmp_path: Path, capacity: object) -> None:
        with pytest.raises(ConfigurationError):
            BoundedMetadataCache(tmp_path / "releases.json", capacity)  # type: ignore[arg-type]


class TestIdentity:
    """Inserting an existing identity replaces rather than grows."""

    def test_upsert_replaces_installed_state(self, tmp_path: Path) -> None:
        cache = BoundedMetadataCache(tmp_path / "releases.json", 5)
        cache.add(make_release("GE-Proton7-51", 2))

        cache.upsert(make_release("GE-Proton7-51", 2).mark_installed(tmp_path / "GE-Proton7-51"))

        assert len(cache) == 1
        assert cache.query()[0].installed_in == tmp_path / "GE-Proton7-51"

    def test_same_tag_different_date_is_distinct(self, tmp_path: Path) -> None:
        cache = BoundedMetadataCache(tmp_path / "releases.json", 5)

        cache.add_range([make_release("nightly", 1), make_release("nightly", 2)])

        assert len(cache) == 2

    def test_get_by_identity(self, tmp_path: Path) -> None:
        cache = BoundedMetadataCache(tmp_path / "releases.json", 5)
        release = make_release("GE-Proton7-51", 2)
        cache.add(release)

        assert cache.get(release.identity) == release
        assert release in cache
        assert cache.get(make_release("missing", 1).identity) is None


def test_reload_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "releases.json"
    BoundedMetadataCache(path, 5).add_range(
        [make_release("a", 1), make_release("b", 2).mark_installed(tmp_path / "b")]
    )

    reloaded = BoundedMetadataCache(path, 5)

    assert [release.tag_name for release in reloaded.query()] == ["b", "a"]
    assert [release.tag_name for release in reloaded.filter(lambda r: r.is_installed)] == ["b"]


def test_query_does_not_mutate(tmp_path: Path) -> None:
    cache = BoundedMetadataCache(tmp_path / "releases.json", 5)
    cache.add_range([make_release("a", 1), make_release("b", 2)])

    listing = cache.query()
    listing.clear()

    assert len(cache.query()) == 2


@pytest.mark.parametrize("content", ["{not json", '{"tag_name": "x"}', '[{"assets": 3}]'])
def test_corrupt_file_starts_empty(tmp_path: Path, caplog: pytest.LogCaptureFixture, content: str) -> None:
    path = tmp_path / "releases.json"
    path.write_text(content, encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="ProtonUp.ReleaseManager.cache"):
        cache = BoundedMetadataCache(path, 5)

    assert len(cache) == 0
    assert any("starting empty" in record.getMessage() for record in caplog.records)

    cache.add(make_release("fresh", 1))
    assert [entry["tag_name"] for entry in json.loads(path.read_text(encoding="utf-8"))] == ["fresh"]


def test_missing_file_starts_empty(tmp_path: Path) -> None:
    cache = BoundedMetadataCache(tmp_path / "nested" / "releases.json", 5)

    assert cache.query() == []
