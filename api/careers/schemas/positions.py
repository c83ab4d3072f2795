from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

PositionStatus = Literal["draft", "open", "closed", "filled"]
PositionSort = Literal["newest", "oldest", "title", "salary_high", "salary_low", "deadline"]
RecordLifecycle = Literal["active", "retired"]
SkillRequirement = Literal["required", "preferred", "nice-to-have"]
SkillProficiency = Literal["beginner", "intermediate", "advanced", "expert"]


class ReferenceSummaryOut(BaseModel):
    id: str
    name: str
    slug: str


class PositionSkillOut(BaseModel):
    skill_id: str
    name: str
    slug: str
    level: SkillRequirement
    proficiency: SkillProficiency | None = None


class PositionOut(BaseModel):
    id: str
    title: str
    slug: str
    summary: str | None = None
    description: str = ""
    requirements: str | None = None
    benefits: str | None = None
    category: ReferenceSummaryOut | None = None
    location: ReferenceSummaryOut | None = None
    type: ReferenceSummaryOut | None = None
    level: ReferenceSummaryOut | None = None
    salary_min: int | None = None
    salary_max: int | None = None
    salary_currency: str = "USD"
    salary_type: str = "yearly"
    application_deadline: datetime | None = None
    start_date: date | None = None
    remote_allowed: bool = False
    travel_required: bool = False
    travel_percentage: int = 0
    featured: bool = False
    urgent: bool = False
    status: PositionStatus
    lifecycle: RecordLifecycle = "active"
    is_active: bool = True
    views_count: int = 0
    applications_count: int = 0
    skills: list[PositionSkillOut] = Field(default_factory=list)
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class PositionPageOut(BaseModel):
    positions: list[PositionOut] = Field(default_factory=list)
    total: int = 0
    total_pages: int = 0
    page: int = 1
    limit: int


class _SalaryRangeMixin(BaseModel):
    @model_validator(mode="after")
    def _check_salary_range(self):
        salary_min = getattr(self, "salary_min", None)
        salary_max = getattr(self, "salary_max", None)
        if salary_min is not None and salary_max is not None and salary_min > salary_max:
            raise ValueError("salary_min must not exceed salary_max")
        return self


class PositionCreateRequest(_SalaryRangeMixin):
    title: str = Field(min_length=1)
    slug: str | None = None
    summary: str | None = None
    description: str = ""
    requirements: str | None = None
    benefits: str | None = None
    category_id: str | None = None
    location_id: str | None = None
    type_id: str | None = None
    level_id: str | None = None
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)
    salary_currency: str = "USD"
    salary_type: str = "yearly"
    application_deadline: datetime | None = None
    start_date: date | None = None
    remote_allowed: bool = False
    travel_required: bool = False
    travel_percentage: int = Field(default=0, ge=0, le=100)
    featured: bool = False
    urgent: bool = False
    status: Literal["draft", "open"] = "draft"


class PositionUpdateRequest(_SalaryRangeMixin):
    title: str | None = Field(default=None, min_length=1)
    slug: str | None = None
    summary: str | None = None
    description: str | None = None
    requirements: str | None = None
    benefits: str | None = None
    category_id: str | None = None
    location_id: str | None = None
    type_id: str | None = None
    level_id: str | None = None
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)
    salary_currency: str | None = None
    salary_type: str | None = None
    application_deadline: datetime | None = None
    start_date: date | None = None
    remote_allowed: bool | None = None
    travel_required: bool | None = None
    travel_percentage: int | None = Field(default=None, ge=0, le=100)
    featured: bool | None = None
    urgent: bool | None = None


class PositionStatusRequest(BaseModel):
    status: PositionStatus


class PositionSkillIn(BaseModel):
    skill_id: str
    level: SkillRequirement = "required"
    proficiency: SkillProficiency | None = None


class PositionSkillsPutRequest(BaseModel):
    skills: list[PositionSkillIn] = Field(default_factory=list)
