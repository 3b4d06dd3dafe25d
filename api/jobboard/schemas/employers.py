from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

EmployerStatus = Literal["pending_review", "approved", "rejected"]


class EmployerSignupRequest(BaseModel):
    token: str
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    company: str = Field(min_length=1)
    role: str | None = None
    website: str | None = None


class EmployerOut(BaseModel):
    id: str
    sender_id: str
    name: str
    email: str
    company: str
    role: str | None = None
    website: str | None = None
    status: EmployerStatus
    approved_at: datetime | None = None
    approved_by: str | None = None
    created_at: datetime


class EmployerSignupOut(BaseModel):
    employer_id: str
    already_existed: bool


class EmployerSetupOut(BaseModel):
    sender_id: str
    submission_id: str
    prefill: dict[str, Any] = Field(default_factory=dict)
    already_setup: bool
    employer_status: EmployerStatus | None = None


class EmployerDecisionRequest(BaseModel):
    token: str


class EmployerConnectOut(BaseModel):
    seeker_email: str | None = None
    seeker_name: str | None = None


class EmployerPortalJob(BaseModel):
    id: str
    title: str | None = None
    company: str | None = None
    status: str


class EmployerPortalApplication(BaseModel):
    id: str
    status: str
    applied_at: datetime
    connected_at: datetime | None = None
    passed_at: datetime | None = None
    resume_id: str | None = None
    seeker_name: str | None = None
    seeker_email: str | None = None


class EmployerPortalOut(BaseModel):
    error: str | None = None
    job: EmployerPortalJob | None = None
    applications: list[EmployerPortalApplication] = Field(default_factory=list)
    employer: dict[str, Any] | None = None
