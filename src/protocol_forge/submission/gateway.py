"""
Submission gateway.

Turns pull-request webhook events into protocol validation runs:

1. verify the ``X-Hub-Signature-256`` HMAC
2. find changed protocol files under the protocols directory
3. load each file through the dynamic loader as inline content
4. check generated tool names against the live registry
5. report back (comment and labels) and optionally merge and activate
"""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Mapping
from typing import Any

from protocol_forge.config import SubmissionConfig
from protocol_forge.errors import (
    ForgeError,
    LoadError,
    SubmissionError,
    WebhookSignatureError,
)
from protocol_forge.lifecycle.events import EventBus, SubmissionProcessed
from protocol_forge.lifecycle.manager import LifecycleManager
from protocol_forge.protocol.loader import DynamicLoader, InlineSource
from protocol_forge.submission.github import SubmissionSource
from protocol_forge.submission.models import Submission, SubmissionStatus
from protocol_forge.telemetry import LogContext, clear_log_context, get_logger, set_log_context

logger = get_logger(__name__)

HANDLED_ACTIONS = frozenset({"opened", "synchronize", "reopened"})
LABEL_COMMUNITY = "community-protocol"
LABEL_PASSED = "validation-passed"
LABEL_FAILED = "validation-failed"

_PROTOCOL_SUFFIXES = (".json",)


def compute_signature(secret: str, body: bytes) -> str:
    """``sha256=<hex>`` HMAC of a webhook body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class SubmissionGateway:
    """Validates community protocol submissions from pull requests.

    Example:
        >>> gateway = SubmissionGateway(config, loader, manager, GitHubSubmissionSource(config))
        >>> submissions = await gateway.handle_webhook(body, signature, "pull_request")
    """

    def __init__(
        self,
        config: SubmissionConfig,
        loader: DynamicLoader,
        manager: LifecycleManager,
        source: SubmissionSource,
        events: EventBus | None = None,
    ) -> None:
        self._config = config
        self._loader = loader
        self._manager = manager
        self._source = source
        self._events = events or manager.events
        self._history: list[Submission] = []

    @property
    def history(self) -> list[Submission]:
        return list(self._history)

    def verify_signature(self, body: bytes, signature: str | None) -> None:
        """Check a webhook signature.

        Raises:
            WebhookSignatureError: Missing secret, missing or wrong signature
        """
        if not self._config.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing webhook signature")
        expected = compute_signature(self._config.webhook_secret, body)
        if not hmac.compare_digest(expected, signature):
            raise WebhookSignatureError("Webhook signature does not match")

    def is_protocol_file(self, filename: str) -> bool:
        prefix = self._config.protocols_dir.strip("/") + "/"
        return filename.startswith(prefix) and filename.endswith(_PROTOCOL_SUFFIXES)

    async def handle_webhook(
        self, body: bytes, signature: str | None, event: str
    ) -> list[Submission]:
        """Process one webhook delivery.

        Args:
            body: Raw request body
            signature: ``X-Hub-Signature-256`` header value
            event: ``X-GitHub-Event`` header value

        Returns:
            Submissions processed for this delivery (empty when ignored)

        Raises:
            WebhookSignatureError: If the signature check fails
            SubmissionError: If the payload is not valid JSON
        """
        self.verify_signature(body, signature)
        if event != "pull_request":
            logger.debug("Ignoring webhook event", event=event)
            return []
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SubmissionError(f"Malformed webhook payload: {e}", cause=e) from e
        if not isinstance(payload, dict):
            raise SubmissionError("Webhook payload is not a JSON object")

        action = payload.get("action")
        if action not in HANDLED_ACTIONS:
            logger.debug("Ignoring pull request action", action=action)
            return []

        pull_request = payload.get("pull_request") or {}
        number = pull_request.get("number")
        if not isinstance(number, int):
            raise SubmissionError("Webhook payload has no pull request number")
        author = (pull_request.get("user") or {}).get("login", "unknown")
        head_sha = (pull_request.get("head") or {}).get("sha")

        files = await self._source.list_changed_files(number)
        paths = [
            f["filename"]
            for f in files
            if f.get("status") != "removed" and self.is_protocol_file(f.get("filename", ""))
        ]
        if not paths:
            logger.info("Pull request changes no protocol files", pull_request=number)
            return []

        submissions = [
            Submission(
                pull_request_number=number,
                author=author,
                protocol_file_path=path,
                head_sha=head_sha,
            )
            for path in paths
        ]
        return await self._process_pull_request(number, submissions)

    async def process(self, submission: Submission) -> Submission:
        """Validate one submitted file, report back and merge when allowed."""
        [result] = await self._process_pull_request(
            submission.pull_request_number, [submission]
        )
        return result

    async def _process_pull_request(
        self, number: int, submissions: list[Submission]
    ) -> list[Submission]:
        """Validate every file of a pull request; merge only if all of them pass."""
        set_log_context(LogContext(pull_request=number))
        try:
            for submission in submissions:
                await self._validate(submission)
            await self._report(number, submissions)
            if all(
                s.status is SubmissionStatus.VALIDATED
                and s.validation is not None
                and not s.validation.errors
                for s in submissions
            ):
                await self._maybe_merge(number, submissions)
        finally:
            clear_log_context()

        for submission in submissions:
            self._history.append(submission)
            logger.info(
                "Submission processed",
                pull_request=number,
                file=submission.protocol_file_path,
                status=submission.status.value,
            )
            await self._events.publish(SubmissionProcessed(submission))
        return submissions

    async def _validate(self, submission: Submission) -> None:
        number = submission.pull_request_number
        path = submission.protocol_file_path
        try:
            content = await self._source.get_file(path, submission.head_sha)
            submission.content = content
            artifact = await self._loader.load(
                InlineSource(content, label=f"pr#{number}:{path}"), use_cache=False
            )
        except (LoadError, SubmissionError) as e:
            submission.errors.append(e.message)
            submission.set_status(SubmissionStatus.REJECTED)
            return

        submission.validation = artifact.validation
        submission.protocol_name = artifact.name
        if not artifact.valid:
            submission.set_status(SubmissionStatus.REJECTED)
            return

        for tool_name in artifact.tool_names:
            owner = self._manager.owner_of(tool_name)
            if owner is not None and owner != artifact.name:
                submission.errors.append(
                    f"Tool name '{tool_name}' is already registered by protocol '{owner}'"
                )
        submission.set_status(
            SubmissionStatus.REJECTED if submission.errors else SubmissionStatus.VALIDATED
        )

    async def _report(self, number: int, submissions: list[Submission]) -> None:
        passed = all(s.passed for s in submissions)
        labels = [LABEL_COMMUNITY, LABEL_PASSED if passed else LABEL_FAILED]
        try:
            for submission in submissions:
                await self._source.post_comment(number, render_report(submission))
            await self._source.set_labels(number, labels)
        except SubmissionError as e:
            # Reporting never changes the outcome
            logger.warning("Failed to report submission result", error=e.message)

    async def _maybe_merge(self, number: int, submissions: list[Submission]) -> None:
        if not self._config.auto_merge:
            return
        try:
            approvals = await self._source.count_approvals(number)
        except SubmissionError as e:
            logger.warning("Cannot read reviews", error=e.message)
            return
        if approvals < self._config.required_approvals:
            logger.info(
                "Auto-merge waiting for approvals",
                approvals=approvals,
                required=self._config.required_approvals,
            )
            return

        names = ", ".join(str(s.protocol_name) for s in submissions)
        noun = "protocol" if len(submissions) == 1 else "protocols"
        try:
            merged = await self._source.merge(
                number, f"Add community {noun} {names} (validated automatically)"
            )
        except SubmissionError as e:
            for submission in submissions:
                submission.errors.append(e.message)
            return
        if not merged:
            return

        for submission in submissions:
            submission.merged = True
            submission.set_status(SubmissionStatus.MERGED)
            await self._activate(submission)

    async def _activate(self, submission: Submission) -> None:
        try:
            if submission.content is None:
                raise SubmissionError(
                    f"No content recorded for {submission.protocol_file_path}",
                    pull_request_number=submission.pull_request_number,
                )
            await self._manager.load(
                InlineSource(submission.content, label=submission.protocol_file_path)
            )
        except ForgeError as e:
            submission.errors.append(e.message)
            logger.error("Merged protocol could not be activated", error=e.message)

    def stats(self) -> dict[str, Any]:
        counts: dict[str, int] = {status.value: 0 for status in SubmissionStatus}
        for submission in self._history:
            counts[submission.status.value] += 1
        return {"total": len(self._history), **counts}


def render_report(submission: Submission) -> str:
    """Markdown comment summarizing a submission's validation."""
    passed = submission.passed
    lines = [
        f"## Protocol validation {'passed' if passed else 'failed'}",
        "",
        f"- Author: @{submission.author}",
        f"- File: `{submission.protocol_file_path}`",
        f"- Status: {submission.status.value}",
    ]
    if submission.protocol_name:
        lines.append(f"- Protocol: `{submission.protocol_name}`")
    lines.append("")

    validation = submission.validation
    if validation is not None and validation.errors:
        lines.append(f"### Errors ({len(validation.errors)})")
        lines.extend(_issue_lines(validation.errors))
        lines.append("")
    if submission.errors:
        lines.append("### Problems")
        lines.extend(f"- {message}" for message in submission.errors)
        lines.append("")
    if validation is not None and validation.warnings:
        lines.append(f"### Warnings ({len(validation.warnings)})")
        lines.extend(_issue_lines(validation.warnings))
        lines.append("")

    if passed:
        lines.append("The protocol is ready for review.")
    else:
        lines.append("Please address the errors above and update the pull request.")
    return "\n".join(lines) + "\n"


def _issue_lines(issues: Any) -> list[str]:
    lines = []
    for index, issue in enumerate(issues, 1):
        line = f"{index}. `{issue.code}` {issue.message}"
        if issue.path:
            line += f" (at `{issue.path}`)"
        lines.append(line)
    return lines


def parse_headers(headers: Mapping[str, str]) -> tuple[str | None, str]:
    """Signature and event name from webhook request headers."""
    lowered = {k.lower(): v for k, v in headers.items()}
    return lowered.get("x-hub-signature-256"), lowered.get("x-github-event", "")
