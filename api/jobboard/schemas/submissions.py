from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

SubmissionSource = Literal["sms", "form"]
SubmissionStatus = Literal["pending_parse", "pending_approval", "approved", "denied", "closed"]
CloseReason = Literal["employer_request", "auto_expired"]


class ParsedJob(BaseModel):
    title: str
    company: str
    location: str | None = None
    employment_type: str | None = None
    salary: str | None = None
    description: str | None = None
    requirements: list[str] = Field(default_factory=list)
    contact_method: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class SubmissionCreateRequest(BaseModel):
    source: SubmissionSource
    sender_id: str | None = None
    raw_content: str = Field(min_length=1)


class SubmissionParsedRequest(BaseModel):
    parsed_job: ParsedJob


class SubmissionDenyRequest(BaseModel):
    reason: str | None = None


class SubmissionCloseRequest(BaseModel):
    reason: CloseReason


class SubmissionOut(BaseModel):
    id: str
    source: SubmissionSource
    sender_id: str | None = None
    raw_content: str
    parsed_job: ParsedJob | None = None
    status: SubmissionStatus
    approved_at: datetime | None = None
    approved_by: str | None = None
    denied_at: datetime | None = None
    deny_reason: str | None = None
    closed_at: datetime | None = None
    closed_reason: str | None = None
    created_at: datetime
    sender_phone: str | None = None
    sender_name: str | None = None


class SubmissionCloseOut(BaseModel):
    already_closed: bool


class MagicLinksOut(BaseModel):
    token: str
    candidates_url: str
    setup_url: str
    expires_at: int


class JobForApplyOut(BaseModel):
    id: str
    title: str
    company: str
    description: str | None = None
    location: str | None = None
    employment_type: str | None = None
    salary: str | None = None


class SubmissionApproveRequest(BaseModel):
    approved_by: str = Field(min_length=1)
