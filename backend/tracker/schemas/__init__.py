from tracker.schemas.auth import AuthResponse, GoogleSignInRequest, MeResponse
from tracker.schemas.job import JobCreate, JobStats, JobUpdate, LiveFrame

__all__ = [
    "AuthResponse",
    "GoogleSignInRequest",
    "MeResponse",
    "JobCreate",
    "JobUpdate",
    "JobStats",
    "LiveFrame",
]
