"""
Submission sources.

A SubmissionSource reads pull-request state and writes results back. The
GitHub implementation talks to the REST API over httpx.
"""

from __future__ import annotations

import base64
import binascii
from abc import ABC, abstractmethod
from typing import Any

import httpx

from protocol_forge.config import SubmissionConfig
from protocol_forge.errors import ErrorContext, SubmissionError
from protocol_forge.telemetry import get_logger
from protocol_forge.transport.http import get_user_agent

logger = get_logger(__name__)

_PAGE_SIZE = 100
_DEFAULT_TIMEOUT = 30.0


class SubmissionSource(ABC):
    """Pull-request operations the gateway depends on."""

    @abstractmethod
    async def get_file(self, path: str, ref: str | None = None) -> str:
        """Text of a repository file at a ref."""
        raise NotImplementedError

    @abstractmethod
    async def list_changed_files(self, pull_request: int) -> list[dict[str, Any]]:
        """Changed files as ``{"filename", "status"}`` dicts."""
        raise NotImplementedError

    @abstractmethod
    async def post_comment(self, pull_request: int, body: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def set_labels(self, pull_request: int, labels: list[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def count_approvals(self, pull_request: int) -> int:
        raise NotImplementedError

    @abstractmethod
    async def merge(self, pull_request: int, message: str) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources held by the source."""


class GitHubSubmissionSource(SubmissionSource):
    """SubmissionSource backed by the GitHub REST API.

    Example:
        >>> source = GitHubSubmissionSource(SubmissionConfig(repository="acme/protocols"))
        >>> text = await source.get_file("protocols/weather-api.json", ref="abc123")
    """

    def __init__(
        self,
        config: SubmissionConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._base = f"{config.api_url.rstrip('/')}/repos/{config.owner}/{config.name}"
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {
                "Accept": "application/vnd.github+json",
                "User-Agent": get_user_agent(),
            }
            if self._config.token:
                headers["Authorization"] = f"Bearer {self._config.token}"
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(_DEFAULT_TIMEOUT), headers=headers
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        pull_request: int | None = None,
        **kwargs: Any,
    ) -> Any:
        url = f"{self._base}{path}"
        try:
            response = await self._get_client().request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise SubmissionError(
                f"GitHub request failed: {method} {path}: {e}",
                pull_request_number=pull_request,
                cause=e,
            ) from e
        if response.status_code >= 400:
            hint = None
            if response.status_code in (401, 403):
                hint = "Check the submission token and its repository permissions"
            raise SubmissionError(
                f"GitHub returned HTTP {response.status_code} for {method} {path}",
                ErrorContext(
                    source="submission",
                    details={"status_code": response.status_code},
                    hint=hint,
                ),
                pull_request_number=pull_request,
            )
        if not response.content:
            return None
        return response.json()

    async def get_file(self, path: str, ref: str | None = None) -> str:
        params = {"ref": ref} if ref else None
        data = await self._request("GET", f"/contents/{path}", params=params)
        if not isinstance(data, dict) or data.get("encoding") != "base64":
            raise SubmissionError(f"Unexpected contents response for {path}")
        try:
            return base64.b64decode(data.get("content", "")).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise SubmissionError(f"Cannot decode {path}: {e}", cause=e) from e

    async def list_changed_files(self, pull_request: int) -> list[dict[str, Any]]:
        files: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = await self._request(
                "GET",
                f"/pulls/{pull_request}/files",
                pull_request,
                params={"per_page": _PAGE_SIZE, "page": page},
            )
            files.extend(batch or [])
            if not batch or len(batch) < _PAGE_SIZE:
                return files
            page += 1

    async def post_comment(self, pull_request: int, body: str) -> None:
        await self._request(
            "POST", f"/issues/{pull_request}/comments", pull_request, json={"body": body}
        )

    async def set_labels(self, pull_request: int, labels: list[str]) -> None:
        await self._request(
            "PUT", f"/issues/{pull_request}/labels", pull_request, json={"labels": labels}
        )

    async def count_approvals(self, pull_request: int) -> int:
        reviews = await self._request("GET", f"/pulls/{pull_request}/reviews", pull_request)
        # Only the latest review of each reviewer counts
        latest: dict[str, str] = {}
        for review in reviews or []:
            login = (review.get("user") or {}).get("login", "")
            state = review.get("state", "")
            if state in ("APPROVED", "CHANGES_REQUESTED", "DISMISSED"):
                latest[login] = state
        return sum(1 for state in latest.values() if state == "APPROVED")

    async def merge(self, pull_request: int, message: str) -> bool:
        data = await self._request(
            "PUT",
            f"/pulls/{pull_request}/merge",
            pull_request,
            json={"commit_message": message, "merge_method": "squash"},
        )
        merged = bool(data and data.get("merged"))
        logger.info("Pull request merge attempted", pull_request=pull_request, merged=merged)
        return merged
