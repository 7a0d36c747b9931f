from __future__ import annotations

import logging
from typing import Any

from src.domain.normalization import normalize_email
from src.domain.outcomes import SubjectNotFound, SubjectResolved
from src.observability import incr_metric, log_event


def _payload_data(payload: dict[str, Any]) -> dict[str, Any]:
    data = payload.get("data")
    return data if isinstance(data, dict) else {}


def _template_ref(data: dict[str, Any]) -> tuple[str | None, str | None]:
    template = data.get("template") if isinstance(data.get("template"), dict) else {}
    raw_id = template.get("id")
    docuseal_template_id = str(raw_id) if raw_id is not None and str(raw_id).strip() else None
    name = template.get("name")
    template_name = str(name) if name is not None and str(name).strip() else None
    return docuseal_template_id, template_name


def _find_user_by_email(supabase_client: Any, email: str) -> dict[str, Any] | None:
    # Earliest account wins when several share an address.
    result = (
        supabase_client.table("users")
        .select("id, name, email, created_at")
        .eq("email", email)
        .order("created_at")
        .limit(1)
        .execute()
    )
    if not result.data:
        return None
    return result.data[0]


def _find_active_template(supabase_client: Any, column: str, value: str) -> dict[str, Any] | None:
    result = (
        supabase_client.table("document_templates")
        .select("id, title, docuseal_template_id")
        .eq(column, value)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    if not result.data:
        return None
    return result.data[0]


def resolve_subject(
    *,
    supabase_client: Any,
    payload: dict[str, Any],
    request_id: str | None = None,
) -> SubjectResolved | SubjectNotFound:
    """Map a DocuSeal payload onto a local user and document template.

    Users are matched on the lower-cased email first, then on the email as
    sent. Templates are matched on the DocuSeal template id, then on the exact
    title; both lookups only consider active templates. "Not found" is a
    returned outcome; storage errors propagate.
    """
    data = _payload_data(payload)
    submission_id = data.get("id")
    email = normalize_email(data.get("email"))
    docuseal_template_id, template_name = _template_ref(data)

    if not email:
        incr_metric("docuseal.subject.not_found", reason="missing_email")
        log_event(
            "docuseal_payload_missing_email",
            level=logging.WARNING,
            request_id=request_id,
            submission_id=submission_id,
        )
        return SubjectNotFound(reason="missing_email")

    if not docuseal_template_id and not template_name:
        incr_metric("docuseal.subject.not_found", reason="missing_template")
        log_event(
            "docuseal_payload_missing_template",
            level=logging.WARNING,
            request_id=request_id,
            submission_id=submission_id,
            email=email,
        )
        return SubjectNotFound(reason="missing_template", email=email)

    email_matched_by = "lowercase"
    user = _find_user_by_email(supabase_client, email.lower())
    if user is None and email != email.lower():
        email_matched_by = "exact"
        user = _find_user_by_email(supabase_client, email)
    if user is None:
        incr_metric("docuseal.subject.not_found", reason="user_not_found")
        log_event(
            "docuseal_user_not_found",
            level=logging.WARNING,
            request_id=request_id,
            email=email,
            submission_id=submission_id,
            docuseal_template_id=docuseal_template_id,
            template_name=template_name,
        )
        return SubjectNotFound(
            reason="user_not_found",
            email=email,
            docuseal_template_id=docuseal_template_id,
            template_name=template_name,
        )

    template_matched_by = "docuseal_template_id"
    template = None
    if docuseal_template_id:
        template = _find_active_template(supabase_client, "docuseal_template_id", docuseal_template_id)
    if template is None and template_name:
        template_matched_by = "title"
        template = _find_active_template(supabase_client, "title", template_name)
    if template is None:
        incr_metric("docuseal.subject.not_found", reason="template_not_found")
        log_event(
            "docuseal_template_not_found",
            level=logging.WARNING,
            request_id=request_id,
            email=email,
            user_id=user["id"],
            submission_id=submission_id,
            docuseal_template_id=docuseal_template_id,
            template_name=template_name,
        )
        return SubjectNotFound(
            reason="template_not_found",
            email=email,
            docuseal_template_id=docuseal_template_id,
            template_name=template_name,
        )

    incr_metric("docuseal.template.matched", matched_by=template_matched_by)
    log_event(
        "docuseal_template_matched",
        request_id=request_id,
        submission_id=submission_id,
        user_id=user["id"],
        document_template_id=template["id"],
        matched_by=template_matched_by,
        docuseal_template_id=docuseal_template_id,
        template_name=template_name,
    )
    return SubjectResolved(
        user_id=str(user["id"]),
        user_name=user.get("name") or email,
        template_id=str(template["id"]),
        template_matched_by=template_matched_by,
        email_matched_by=email_matched_by,
    )
