"""
Submission records.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from protocol_forge.protocol.validator import ValidationResult


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    REJECTED = "rejected"
    MERGED = "merged"


@dataclass
class Submission:
    """A protocol file proposed through a pull request.

    Attributes:
        pull_request_number: Pull request number
        author: Login of the pull request author
        protocol_file_path: Repository path of the protocol file
        head_sha: Commit the file was read at
        status: Processing state
        validation: Validation result, once processed
        protocol_name: Name declared by the document, when readable
        errors: Failures that are not validation issues (fetch, collision)
        merged: Whether the pull request was merged
        content: Submitted document text, once fetched
    """

    pull_request_number: int
    author: str
    protocol_file_path: str
    head_sha: str | None = None
    status: SubmissionStatus = SubmissionStatus.PENDING
    validation: ValidationResult | None = None
    protocol_name: str | None = None
    errors: list[str] = field(default_factory=list)
    merged: bool = False
    content: str | None = field(default=None, repr=False)
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def passed(self) -> bool:
        return self.status in (SubmissionStatus.VALIDATED, SubmissionStatus.MERGED)

    def set_status(self, status: SubmissionStatus) -> None:
        self.status = status
        self.updated_at = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "pull_request": self.pull_request_number,
            "author": self.author,
            "file": self.protocol_file_path,
            "head_sha": self.head_sha,
            "status": self.status.value,
            "protocol": self.protocol_name,
            "merged": self.merged,
            "errors": list(self.errors),
            "validation": self.validation.to_dict() if self.validation else None,
        }
