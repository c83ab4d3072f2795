from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

ApplicationStatus = Literal[
    "submitted",
    "reviewing",
    "interview_scheduled",
    "interview_completed",
    "offered",
    "accepted",
    "rejected",
    "withdrawn",
]
ApplicationAction = Literal[
    "reviewing",
    "interview_scheduled",
    "offered",
    "accepted",
    "rejected",
    "delete",
]
ActivityType = Literal["created", "status_change", "deleted"]


class ApplicationDocument(BaseModel):
    name: str
    url: str
    type: str


class ApplicationSubmitRequest(BaseModel):
    position_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    portfolio_url: str | None = None
    github_url: str | None = None
    cover_letter: str | None = None
    resume_url: str | None = None
    additional_documents: list[ApplicationDocument] = Field(default_factory=list)
    source: str | None = None


class ApplicationPositionOut(BaseModel):
    id: str
    title: str
    slug: str


class ApplicationOut(BaseModel):
    id: str
    position_id: str
    position: ApplicationPositionOut | None = None
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    linkedin_url: str | None = None
    portfolio_url: str | None = None
    github_url: str | None = None
    cover_letter: str | None = None
    resume_url: str | None = None
    additional_documents: list[ApplicationDocument] = Field(default_factory=list)
    notes: str | None = None
    source: str | None = None
    status: ApplicationStatus
    applied_at: datetime
    last_activity_at: datetime
    created_at: datetime
    updated_at: datetime


class ApplicationTransitionRequest(BaseModel):
    status: ApplicationStatus
    notes: str | None = None


class ApplicationActivityOut(BaseModel):
    id: int
    application_id: str
    activity_type: ActivityType
    old_status: ApplicationStatus | None = None
    new_status: ApplicationStatus | None = None
    description: str | None = None
    notes: str | None = None
    created_at: datetime


class ApplicationActionsOut(BaseModel):
    application_id: str
    status: ApplicationStatus
    actions: list[ApplicationAction] = Field(default_factory=list)
