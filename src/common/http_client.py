"""Shared HTTP helpers used by the repository client.

Encapsulates common request/timeout error handling so callers avoid
duplicating try/except blocks. Transport failures surface as
``RepositoryAccessError``; HTTP status handling is left to the caller.
"""
from __future__ import annotations

import logging
import os
import tempfile
from typing import Any

import requests

from constants import Constants
from errors import RepositoryAccessError
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def _headers(kwargs: dict) -> dict:
    headers = dict(kwargs.pop("headers", None) or {})
    headers.setdefault("User-Agent", Constants.USER_AGENT)
    return headers


def safe_get(url: str, *, context: str, **kwargs: Any) -> requests.Response:
    """Perform a GET request with consistent error handling and DEBUG traces."""
    safe_target = safe_url(url)
    headers = _headers(kwargs)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context
                )
            )
        try:
            res = requests.get(url, timeout=Constants.REQUEST_TIMEOUT, headers=headers, **kwargs)
        except requests.Timeout as exc:
            logger.error(
                "%s request timed out after %s seconds",
                context,
                Constants.REQUEST_TIMEOUT,
            )
            raise RepositoryAccessError(
                f"{context} request to {safe_target} timed out after {Constants.REQUEST_TIMEOUT} seconds"
            ) from exc
        except requests.RequestException as exc:  # includes ConnectionError
            logger.error("%s connection error: %s", context, exc)
            raise RepositoryAccessError(f"{context} request to {safe_target} failed: {exc}") from exc

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success" if res.status_code == 200 else "non_2xx",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context
                )
            )
        return res


def download(url: str, destination: str, *, context: str) -> bool:
    """Stream ``url`` into ``destination``.

    The body is written to a temporary file in the destination directory and
    renamed into place, so readers never observe a partial file.

    Returns:
        True when the file was downloaded, False on HTTP 404.

    Raises:
        RepositoryAccessError: on transport errors or unexpected status codes.
    """
    res = safe_get(url, context=context, stream=True)
    try:
        if res.status_code == 404:
            return False
        if res.status_code != 200:
            raise RepositoryAccessError(
                f"{context} request to {safe_url(url)} returned HTTP {res.status_code}"
            )
        directory = os.path.dirname(destination) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".part-", dir=directory)
        try:
            with os.fdopen(fd, "wb") as fh:
                for chunk in res.iter_content(chunk_size=65536):
                    if chunk:
                        fh.write(chunk)
            os.replace(tmp_path, destination)
        except requests.RequestException as exc:
            os.unlink(tmp_path)
            raise RepositoryAccessError(f"{context} download of {safe_url(url)} failed: {exc}") from exc
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise RepositoryAccessError(f"Couldn't write {destination}: {exc}") from exc
        return True
    finally:
        res.close()
