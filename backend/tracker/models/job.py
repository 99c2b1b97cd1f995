"""Job application record as seen by the rest of the service.

Records are rebuilt from raw store documents on every read. Documents written
by older clients or edited by hand may miss fields, so the conversion never
raises: strings fall back to "" and unreadable dates to None.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    APPLIED = "Applied"
    INTERVIEW = "Interview"
    REJECTED = "Rejected"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


def to_calendar_date(raw: Any) -> date | None:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip().replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, Enum):
        return str(raw.value)
    return raw if isinstance(raw, str) else str(raw)


class JobRecord(BaseModel):
    id: str
    company_name: str = ""
    role: str = ""
    status: str = ""
    applied_at: date | None = None
    updated_at: date | None = None
    user_id: str = ""
    user_email: str = ""
    user_name: str = ""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_document(cls, doc_id: str, fields: Mapping[str, Any] | None) -> "JobRecord":
        fields = fields or {}
        return cls(
            id=doc_id,
            company_name=_text(fields.get("companyName")),
            role=_text(fields.get("role")),
            status=_text(fields.get("status")),
            applied_at=to_calendar_date(fields.get("appliedAt")),
            updated_at=to_calendar_date(fields.get("updatedAt")),
            user_id=_text(fields.get("userId")),
            user_email=_text(fields.get("userEmail")),
            user_name=_text(fields.get("userName")),
        )
