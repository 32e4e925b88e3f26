"""Shared HTTPX client used for registry queries and artifact downloads."""

from __future__ import annotations

import contextlib
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx

from .errors import ArtifactIOError, DownloadFailure
from .settings import HttpSettings

LOGGER = logging.getLogger("ProtonUp.ReleaseManager.net")

# --- Constants & globals -------------------------------------------------------

_STREAM_CHUNK_SIZE = 1 << 20
_CLIENT_LOCK = threading.RLock()
_HTTP_CLIENT: Optional[httpx.Client] = None
_CLIENT_FACTORY: Optional[Callable[[], httpx.Client]] = None
_DEFAULT_SETTINGS = HttpSettings()
_OWNS_CLIENT = False

# --- Client construction helpers ----------------------------------------------


def _timeout_for(settings: HttpSettings) -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.timeout_connect,
        read=settings.timeout_read,
        write=settings.timeout_read,
        pool=settings.timeout_connect,
    )


def _response_hook(response: httpx.Response) -> None:
    LOGGER.debug(
        "http-response",
        extra={"url": str(response.request.url), "status": response.status_code},
    )


def _build_http_client(settings: HttpSettings) -> httpx.Client:
    return httpx.Client(
        timeout=_timeout_for(settings),
        headers={"User-Agent": settings.user_agent},
        follow_redirects=True,
        trust_env=True,
        event_hooks={"response": [_response_hook]},
    )


def _close_client_unlocked() -> None:
    global _HTTP_CLIENT, _OWNS_CLIENT
    if _HTTP_CLIENT is not None:
        with contextlib.suppress(Exception):
            _HTTP_CLIENT.close()
    _HTTP_CLIENT = None
    _OWNS_CLIENT = False


# --- Public API ----------------------------------------------------------------


def configure_http_client(
    client: Optional[httpx.Client] = None,
    *,
    factory: Optional[Callable[[], httpx.Client]] = None,
    default_settings: Optional[HttpSettings] = None,
) -> None:
    """Override the shared HTTPX client or register a factory for tests."""

    if client is not None and factory is not None:
        raise ValueError("provide either a client or factory, not both")

    with _CLIENT_LOCK:
        global _HTTP_CLIENT, _CLIENT_FACTORY, _DEFAULT_SETTINGS

        if default_settings is not None:
            _DEFAULT_SETTINGS = default_settings

        if client is None:
            _close_client_unlocked()
        else:
            if _HTTP_CLIENT is not client:
                _close_client_unlocked()
            _HTTP_CLIENT = client

        _CLIENT_FACTORY = factory


def reset_http_client() -> None:
    """Reset the shared HTTPX client to its default configuration (test helper)."""

    with _CLIENT_LOCK:
        global _CLIENT_FACTORY, _DEFAULT_SETTINGS
        _CLIENT_FACTORY = None
        _DEFAULT_SETTINGS = HttpSettings()
        _close_client_unlocked()


def apply_http_settings(settings: HttpSettings) -> None:
    """Use ``settings`` for the default client, rebuilding it if one was already built.

    Clients installed through :func:`configure_http_client` are left untouched.
    """

    global _DEFAULT_SETTINGS
    with _CLIENT_LOCK:
        _DEFAULT_SETTINGS = settings
        if _OWNS_CLIENT:
            _close_client_unlocked()


def get_http_client() -> httpx.Client:
    """Return the shared HTTPX client, creating it if necessary."""

    global _HTTP_CLIENT, _OWNS_CLIENT
    with _CLIENT_LOCK:
        if _HTTP_CLIENT is not None:
            return _HTTP_CLIENT
        if _CLIENT_FACTORY is not None:
            candidate = _CLIENT_FACTORY()
            if not isinstance(candidate, httpx.Client):
                raise TypeError("client factory must return an httpx.Client")
            _HTTP_CLIENT = candidate
        else:
            _HTTP_CLIENT = _build_http_client(_DEFAULT_SETTINGS)
            _OWNS_CLIENT = True
        return _HTTP_CLIENT


def fetch_text(url: str, *, client: Optional[httpx.Client] = None) -> str:
    """GET ``url`` and return the decoded body (checksum files, small metadata)."""

    http = client or get_http_client()
    try:
        response = http.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise DownloadFailure(
            f"GET {url} failed with HTTP {exc.response.status_code}",
            status_code=exc.response.status_code,
        ) from exc
    except httpx.HTTPError as exc:
        raise DownloadFailure(f"GET {url} failed: {exc}") from exc
    return response.text


def stream_to_file(
    url: str,
    destination: Path,
    *,
    client: Optional[httpx.Client] = None,
) -> int:
    """Stream ``url`` into ``destination``, truncating it first.

    Returns the number of bytes written.  The partially written file is removed
    when the transfer fails; nothing is retried.
    """

    http = client or get_http_client()
    written = 0
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with http.stream("GET", url) as response:
            response.raise_for_status()
            with destination.open("wb") as sink:
                for chunk in response.iter_bytes(_STREAM_CHUNK_SIZE):
                    if not chunk:
                        continue
                    sink.write(chunk)
                    written += len(chunk)
    except httpx.HTTPStatusError as exc:
        destination.unlink(missing_ok=True)
        raise DownloadFailure(
            f"Download of {url} failed with HTTP {exc.response.status_code}",
            status_code=exc.response.status_code,
        ) from exc
    except httpx.HTTPError as exc:
        destination.unlink(missing_ok=True)
        raise DownloadFailure(f"Download of {url} failed: {exc}") from exc
    except OSError as exc:
        destination.unlink(missing_ok=True)
        LOGGER.error(
            "filesystem error during download",
            extra={"stage": "download", "error": str(exc)},
        )
        raise ArtifactIOError(f"Failed to write download to {destination}: {exc}") from exc
    return written


def auth_headers(settings: HttpSettings) -> Dict[str, str]:
    """Return registry API headers, including a bearer token when configured."""

    headers = {"Accept": "application/vnd.github+json"}
    if settings.github_token:
        headers["Authorization"] = f"Bearer {settings.github_token}"
    return headers


__all__ = [
    "configure_http_client",
    "reset_http_client",
    "apply_http_settings",
    "get_http_client",
    "fetch_text",
    "stream_to_file",
    "auth_headers",
]
