"""Testing utilities for exercising the release manager without the network.

Provides a context manager that swaps the shared HTTPX client for one backed by
an :class:`httpx.MockTransport`-style transport, a router that serves canned
responses while recording every request, and an in-memory release registry.
"""

from __future__ import annotations

import contextlib
import json
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Union

import httpx

from .errors import NotFoundError
from .models import Release
from .net import configure_http_client, reset_http_client

__all__ = [
    "ResponseSpec",
    "MockRouter",
    "InMemoryReleaseRegistry",
    "use_mock_http_client",
]


@contextlib.contextmanager
def use_mock_http_client(transport: httpx.BaseTransport, **client_kwargs) -> Iterator[httpx.Client]:
    """Temporarily install an HTTPX client backed by ``transport``."""

    default_settings = client_kwargs.pop("default_settings", None)
    client_kwargs.setdefault("follow_redirects", True)
    client = httpx.Client(transport=transport, **client_kwargs)
    configure_http_client(client=client, default_settings=default_settings)
    try:
        yield client
    finally:
        reset_http_client()
        client.close()


@dataclass
class ResponseSpec:
    """HTTP response definition served by :class:`MockRouter`."""

    status: int = 200
    body: Union[bytes, str, list, dict] = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    def serialise_body(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body).encode("utf-8")


class MockRouter:
    """Serve canned responses keyed by URL and record every request.

    Instances are callables suitable for :class:`httpx.MockTransport`; unknown
    URLs answer ``404``.
    """

    def __init__(self, routes: Optional[Mapping[str, ResponseSpec]] = None) -> None:
        self.routes: Dict[str, ResponseSpec] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def add(self, url: str, spec: ResponseSpec) -> None:
        self.routes[url] = spec

    def count(self, url: Optional[str] = None) -> int:
        """Return how many requests were made (to ``url`` when given)."""

        if url is None:
            return len(self.requests)
        return sum(1 for request in self.requests if str(request.url) == url)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        spec = self.routes.get(str(request.url))
        if spec is None:
            return httpx.Response(404, content=b"not found", request=request)
        return httpx.Response(
            spec.status,
            content=spec.serialise_body(),
            headers=dict(spec.headers),
            request=request,
        )


class InMemoryReleaseRegistry:
    """Release registry backed by a fixed list of releases."""

    def __init__(self, releases: Sequence[Release] = ()) -> None:
        self.releases: List[Release] = list(releases)
        self.list_calls = 0
        self.tag_calls = 0

    def list_releases(self, owner: str, repo: str, page_size: int) -> List[Release]:
        self.list_calls += 1
        ordered = sorted(self.releases, key=lambda release: release.sort_key(), reverse=True)
        return [release.model_copy(deep=True) for release in ordered[:page_size]]

    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Release:
        self.tag_calls += 1
        for release in self.releases:
            if release.tag_name == tag:
                return release.model_copy(deep=True)
        raise NotFoundError(f"Registry has no release {tag} of {owner}/{repo}")
