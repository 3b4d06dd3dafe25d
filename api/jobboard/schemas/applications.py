from datetime import datetime
from typing import Literal

from pydantic import BaseModel

ApplicationStatus = Literal["pending", "connected", "passed"]


class ApplicationCreateRequest(BaseModel):
    resume_id: str | None = None


class InternalApplicationCreateRequest(BaseModel):
    job_submission_id: str
    seeker_profile_id: str
    resume_id: str | None = None


class ApplicationCreateOut(BaseModel):
    id: str
    is_first_applicant: bool


class HasAppliedOut(BaseModel):
    has_applied: bool


class ApplicationCountOut(BaseModel):
    count: int


class ApplicationOut(BaseModel):
    id: str
    job_submission_id: str
    seeker_profile_id: str
    resume_id: str | None = None
    status: ApplicationStatus
    applied_at: datetime
    connected_at: datetime | None = None
    passed_at: datetime | None = None
    seeker_name: str | None = None
    seeker_email: str | None = None
    seeker_phone: str | None = None
