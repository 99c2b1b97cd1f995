from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from tracker.models.job import JobRecord, JobStatus


def _require_not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class JobCreate(BaseModel):
    company_name: str = Field(min_length=1, max_length=255)
    role: str = Field(min_length=1, max_length=255)
    status: JobStatus

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator("company_name", "role")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return _require_not_blank(value)


class JobUpdate(BaseModel):
    company_name: str | None = Field(default=None, min_length=1, max_length=255)
    role: str | None = Field(default=None, min_length=1, max_length=255)
    status: JobStatus | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "forbid"

    @field_validator("company_name", "role")
    @classmethod
    def _not_blank(cls, value: str | None) -> str | None:
        return None if value is None else _require_not_blank(value)

    def to_fields(self) -> dict[str, str]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude_none=True)


class JobStats(BaseModel):
    total: int = 0
    in_progress: int = 0
    interviewed: int = 0
    success_rate: int = 0
    applied: int = 0
    interview: int = 0
    rejected: int = 0

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class LiveFrame(BaseModel):
    jobs: list[JobRecord] = Field(default_factory=list)
    stats: JobStats = Field(default_factory=JobStats)
