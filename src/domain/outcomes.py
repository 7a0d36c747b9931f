from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


SubjectNotFoundReason = Literal[
    "missing_email",
    "missing_template",
    "user_not_found",
    "template_not_found",
]
ReconciliationOutcome = Literal["reconciled", "subject_not_found", "unknown_event"]


@dataclass(frozen=True)
class SubjectResolved:
    """Local identities a DocuSeal submission maps onto."""
    user_id: str
    user_name: str
    template_id: str
    template_matched_by: Literal["docuseal_template_id", "title"]
    email_matched_by: Literal["lowercase", "exact"]


@dataclass(frozen=True)
class SubjectNotFound:
    reason: SubjectNotFoundReason
    email: str | None = None
    docuseal_template_id: str | None = None
    template_name: str | None = None


@dataclass(frozen=True)
class StatusProjection:
    status: str
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UnknownEvent:
    event_type: str


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ReconciliationOutcome
    event_type: str
    submission_id: str | None = None
    user_id: str | None = None
    template_id: str | None = None
    record_id: str | None = None
    status: str | None = None
    audit_closed: bool = False
    not_found_reason: SubjectNotFoundReason | None = None
