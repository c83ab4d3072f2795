from typing import Literal

from pydantic import BaseModel, Field

from careers.schemas.applications import ApplicationOut

FailureKind = Literal["validation", "persistence", "invariant", "not_found"]


class OperationError(BaseModel):
    kind: FailureKind
    message: str
    reason: str | None = None
    fields: list[str] = Field(default_factory=list)
    code: str | None = None
    detail: str | None = None
    hint: str | None = None


class OperationResult(BaseModel):
    success: bool
    error: OperationError | None = None


class ApplicationResult(OperationResult):
    application_id: str | None = None
    application: ApplicationOut | None = None
