"""Command line behaviour exercised through Typer's CliRunner."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import GE_TAG
from typer.testing import CliRunner

from ProtonUp.ReleaseManager import __version__
from ProtonUp.ReleaseManager.cli import app
from ProtonUp.ReleaseManager.testing import MockRouter

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in ("PUP_CONFIG", "PUP_LOG_LEVEL", "PUP_GITHUB_TOKEN", "PUP_INSTALL_DIR", "PUP_CACHE_DIR"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "modules:\n"
        "  proton-ge:\n"
        "    owner: GloriousEggroll\n"
        "    repo: proton-ge-custom\n"
        f"    install_dir: {tmp_path / 'compat'}\n"
        f"    cache_dir: {tmp_path / 'cache'}\n",
        encoding="utf-8",
    )
    return path


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_list(config_file: Path, ge_release_routes: MockRouter, http_client) -> None:
    result = runner.invoke(app, ["--config", str(config_file), "list"])

    assert result.exit_code == 0, result.output
    assert GE_TAG in result.output
    assert "GE-Proton7-50" in result.output


def test_install_then_list_installed(
    config_file: Path, tmp_path: Path, ge_release_routes: MockRouter, http_client
) -> None:
    empty = runner.invoke(app, ["-c", str(config_file), "list", "--installed"])
    assert empty.exit_code == 0, empty.output
    assert "No installed releases." in empty.output

    result = runner.invoke(app, ["-c", str(config_file), "install", GE_TAG])
    assert result.exit_code == 0, result.output
    assert f"Installed {GE_TAG}" in result.output
    assert (tmp_path / "compat" / GE_TAG / "proton").is_file()

    listed = runner.invoke(app, ["-c", str(config_file), "list", "-i"])
    assert listed.exit_code == 0, listed.output
    assert GE_TAG in listed.output


def test_install_overrides_and_no_verify(
    config_file: Path, tmp_path: Path, ge_release_routes: MockRouter, http_client
) -> None:
    result = runner.invoke(
        app,
        [
            "-c",
            str(config_file),
            "install",
            GE_TAG,
            "--no-verify",
            "--no-cache",
            "--install-dir",
            str(tmp_path / "elsewhere"),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "skipped" in result.output
    assert (tmp_path / "elsewhere" / GE_TAG).is_dir()


def test_check_is_the_default_command(config_file: Path, ge_release_routes: MockRouter, http_client) -> None:
    before = runner.invoke(app, ["-c", str(config_file)])
    assert before.exit_code == 0, before.output
    assert "is not installed" in before.output

    runner.invoke(app, ["-c", str(config_file), "install", GE_TAG])

    after = runner.invoke(app, ["-c", str(config_file), "check"])
    assert after.exit_code == 0, after.output
    assert "Up to date" in after.output


def test_errors_exit_with_code_one(config_file: Path, ge_release_routes: MockRouter, http_client) -> None:
    result = runner.invoke(app, ["-c", str(config_file), "install", "GE-Proton0-0"])

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_unknown_module(config_file: Path) -> None:
    result = runner.invoke(app, ["-c", str(config_file), "-m", "wine-ge", "list"])

    assert result.exit_code == 1
    assert "wine-ge" in result.output


def test_missing_config_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["-c", str(tmp_path / "absent.yaml"), "list"])

    assert result.exit_code == 1
    assert "not found" in result.output
