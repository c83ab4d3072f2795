from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from careers.schemas.positions import RecordLifecycle

ReferenceKind = Literal["categories", "locations", "types", "levels", "skills"]


class ReferenceOut(BaseModel):
    id: str
    kind: ReferenceKind
    name: str
    slug: str
    description: str | None = None
    sort_order: int = 0
    lifecycle: RecordLifecycle = "active"
    is_active: bool = True
    attributes: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class ReferenceCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    sort_order: int | None = Field(default=None, ge=0)
    attributes: dict[str, Any] = Field(default_factory=dict)


class ReferenceUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    sort_order: int | None = Field(default=None, ge=0)
    attributes: dict[str, Any] | None = None


class ReferenceUsageOut(BaseModel):
    kind: ReferenceKind
    id: str
    positions_count: int
