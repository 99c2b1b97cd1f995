from tracker.models.document import Document
from tracker.models.job import JobRecord, JobStatus

__all__ = ["Document", "JobRecord", "JobStatus"]
