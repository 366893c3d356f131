"""提交模块：拉取请求中的社区协议校验与合并。

Submission module - validation and merge of community protocols from pull requests.
"""

from protocol_forge.submission.gateway import (
    HANDLED_ACTIONS,
    SubmissionGateway,
    compute_signature,
    parse_headers,
    render_report,
)
from protocol_forge.submission.github import GitHubSubmissionSource, SubmissionSource
from protocol_forge.submission.models import Submission, SubmissionStatus

__all__ = [
    "HANDLED_ACTIONS",
    "GitHubSubmissionSource",
    "Submission",
    "SubmissionGateway",
    "SubmissionSource",
    "SubmissionStatus",
    "compute_signature",
    "parse_headers",
    "render_report",
]
