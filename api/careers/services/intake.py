from __future__ import annotations

import re
from typing import Any
from uuid import UUID

from careers.schemas.applications import ApplicationSubmitRequest

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
REQUIRED_FIELDS = ("first_name", "last_name", "email", "position_id")
_OPTIONAL_TEXT_FIELDS = (
    "phone",
    "linkedin_url",
    "portfolio_url",
    "github_url",
    "cover_letter",
    "resume_url",
    "source",
)


class IntakeValidationError(ValueError):
    def __init__(self, reason: str, fields: list[str], message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.fields = fields


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


def prepare_application(payload: ApplicationSubmitRequest) -> dict[str, Any]:
    """Validate an intake payload and return the column values to insert.

    Raises IntakeValidationError before anything touches storage.
    """
    cleaned = {field: _clean(getattr(payload, field)) for field in REQUIRED_FIELDS}
    missing = [field for field in REQUIRED_FIELDS if not cleaned[field]]
    if missing:
        raise IntakeValidationError(
            "missing_required",
            missing,
            f"missing required fields: {', '.join(missing)}",
        )

    if not is_valid_email(cleaned["email"]):
        raise IntakeValidationError("invalid_email", ["email"], "invalid email format")

    try:
        position_id = str(UUID(cleaned["position_id"]))
    except ValueError as exc:
        raise IntakeValidationError("invalid_position_id", ["position_id"], "invalid position id") from exc

    prepared: dict[str, Any] = {
        "position_id": position_id,
        "first_name": cleaned["first_name"],
        "last_name": cleaned["last_name"],
        "email": cleaned["email"],
    }
    for field in _OPTIONAL_TEXT_FIELDS:
        prepared[field] = _clean(getattr(payload, field))
    prepared["additional_documents"] = [document.model_dump() for document in payload.additional_documents]
    return prepared
