from __future__ import annotations

import math
from collections import Counter
from typing import Any, Iterable, Mapping

from tracker.models.job import JobRecord, JobStatus
from tracker.schemas.job import JobStats


def _status_of(record: JobRecord | Mapping[str, Any] | Any) -> str:
    if isinstance(record, JobRecord):
        return record.status
    if isinstance(record, Mapping):
        raw = record.get("status")
        return raw if isinstance(raw, str) else ""
    return ""


def success_rate(interviewed: int, total: int) -> int:
    if total <= 0:
        return 0
    # half-up, 1/8 -> 13 rather than banker's 12
    return int(math.floor(interviewed / total * 100 + 0.5))


def compute_stats(records: Iterable[JobRecord | Mapping[str, Any]]) -> JobStats:
    statuses = [_status_of(record) for record in records]
    counts = Counter(statuses)
    total = len(statuses)
    interview = counts.get(JobStatus.INTERVIEW.value, 0)
    return JobStats(
        total=total,
        in_progress=interview,
        interviewed=interview,
        success_rate=success_rate(interview, total),
        applied=counts.get(JobStatus.APPLIED.value, 0),
        interview=interview,
        rejected=counts.get(JobStatus.REJECTED.value, 0),
    )
