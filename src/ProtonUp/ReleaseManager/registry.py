"""Release registry clients.

The release manager only needs two capabilities from a registry: list the most
recent releases of a repository, and fetch one release by tag.  Both return
:class:`~ProtonUp.ReleaseManager.models.Release` records built from the
registry payload; optional fields (names, timestamps) may be absent.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from .errors import NotFoundError, RegistryError
from .models import Release
from .net import auth_headers, get_http_client
from .settings import HttpSettings

__all__ = ["GITHUB_API_URL", "ReleaseRegistry", "GitHubReleaseRegistry", "parse_release"]

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class ReleaseRegistry(Protocol):
    """Protocol describing release metadata providers."""

    def list_releases(self, owner: str, repo: str, page_size: int) -> List[Release]:
        """Return up to ``page_size`` releases, newest first as reported by the registry."""

    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Release:
        """Return the release tagged ``tag`` or raise :class:`NotFoundError`."""


def parse_release(payload: Any) -> Release:
    """Build a :class:`Release` from a registry JSON object."""

    if not isinstance(payload, dict):
        raise RegistryError(f"Expected a release object, got {type(payload).__name__}")
    try:
        return Release.model_validate(payload)
    except PydanticValidationError as exc:
        raise RegistryError(f"Malformed release payload: {exc}") from exc


class GitHubReleaseRegistry:
    """Fetch release metadata from the GitHub Releases API."""

    def __init__(
        self,
        settings: Optional[HttpSettings] = None,
        *,
        api_url: str = GITHUB_API_URL,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._settings = settings or HttpSettings()
        self._api_url = api_url.rstrip("/")
        self._client = client

    def list_releases(self, owner: str, repo: str, page_size: int) -> List[Release]:
        per_page = max(1, min(int(page_size), 100))
        url = f"{self._releases_url(owner, repo)}?per_page={per_page}"
        payload = self._request_json(url, subject=f"releases of {owner}/{repo}")
        if not isinstance(payload, list):
            raise RegistryError(f"Expected a list of releases from {url}")
        releases = [parse_release(entry) for entry in payload[:per_page]]
        logger.debug(
            "listed releases",
            extra={"stage": "registry", "repository": f"{owner}/{repo}", "count": len(releases)},
        )
        return releases

    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Release:
        url = f"{self._releases_url(owner, repo)}/tags/{quote(tag, safe='')}"
        payload = self._request_json(url, subject=f"release {tag} of {owner}/{repo}")
        release = parse_release(payload)
        logger.info(
            "resolved release",
            extra={"stage": "registry", "tag": release.tag_name, "assets": len(release.assets)},
        )
        return release

    def _releases_url(self, owner: str, repo: str) -> str:
        return f"{self._api_url}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/releases"

    def _request_json(self, url: str, *, subject: str) -> Any:
        client = self._client or get_http_client()
        try:
            response = client.get(url, headers=auth_headers(self._settings))
        except httpx.HTTPError as exc:
            raise RegistryError(f"Failed to query {url}: {exc}") from exc
        if response.status_code == 404:
            raise NotFoundError(f"Registry has no {subject}")
        if response.is_error:
            raise RegistryError(
                f"Registry request for {subject} failed with HTTP {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise RegistryError(f"Registry returned invalid JSON for {subject}") from exc
