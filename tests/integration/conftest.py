"""
Integration test fixtures.

Everything here talks HTTP through httpx with pytest-httpx intercepting.
"""

from __future__ import annotations

import base64
import json
from typing import Any

import pytest

from protocol_forge.config import SubmissionConfig
from protocol_forge.submission import GitHubSubmissionSource

GITHUB_REPO_URL = "https://api.github.com/repos/acme/protocols"


def _contents_response(content: str) -> dict[str, Any]:
    """Body of a GitHub contents API response for a text file."""
    return {
        "type": "file",
        "encoding": "base64",
        "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
    }


@pytest.fixture
def contents_response():
    return _contents_response


@pytest.fixture
def github_config() -> SubmissionConfig:
    return SubmissionConfig(
        repository="acme/protocols",
        token="ghp_integration",
        webhook_secret="integration-secret",
    )


@pytest.fixture
def github_source(github_config: SubmissionConfig) -> GitHubSubmissionSource:
    return GitHubSubmissionSource(github_config)


@pytest.fixture
def mock_pull_request(httpx_mock, weather_protocol):
    """Register the GitHub responses for one pull request adding a protocol."""

    def register(number: int = 42, document: Any = None, sha: str = "abc123") -> str:
        path = "protocols/weather-api.json"
        text = json.dumps(document if document is not None else weather_protocol)
        httpx_mock.add_response(
            url=f"{GITHUB_REPO_URL}/pulls/{number}/files?per_page=100&page=1",
            json=[{"filename": path, "status": "added"}],
        )
        httpx_mock.add_response(
            url=f"{GITHUB_REPO_URL}/contents/{path}?ref={sha}",
            json=_contents_response(text),
        )
        httpx_mock.add_response(
            method="POST", url=f"{GITHUB_REPO_URL}/issues/{number}/comments", json={"id": 1}
        )
        httpx_mock.add_response(
            method="PUT", url=f"{GITHUB_REPO_URL}/issues/{number}/labels", json=[]
        )
        return text

    return register
