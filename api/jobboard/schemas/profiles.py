from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

CommuteMinutes = Literal[10, 30, 60]


class ProfileUpsertRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    bio: str | None = None
    home_lat: float | None = Field(default=None, ge=-90.0, le=90.0)
    home_lon: float | None = Field(default=None, ge=-180.0, le=180.0)
    home_address: str | None = None


class ProfileOut(BaseModel):
    id: str
    user_id: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    bio: str | None = None
    home_lat: float | None = None
    home_lon: float | None = None
    home_address: str | None = None
    created_at: datetime
    updated_at: datetime


class JobPreferencesRequest(BaseModel):
    max_commute_minutes: CommuteMinutes | None = None
    require_bus: bool = False
    require_rail: bool = False
    require_public_transit: bool = False
    require_second_chance: bool = False
    prefer_second_chance: bool = False
    prefer_urgent: bool = False
    prefer_easy_apply: bool = False
    shift_morning: bool = False
    shift_afternoon: bool = False
    shift_evening: bool = False
    shift_overnight: bool = False
    shift_flexible: bool = False


class JobPreferencesOut(JobPreferencesRequest):
    user_id: str
    updated_at: datetime


JobReviewStatus = Literal["saved", "skipped"]


class JobSnapshot(BaseModel):
    title: str
    company: str
    url: str = ""
    location: str | None = None
    salary: str | None = None
    shifts: list[str] = Field(default_factory=list)
    second_chance_tier: str | None = None
    is_second_chance: bool = False
    bus_accessible: bool = False
    rail_accessible: bool = False
    transit_accessible: bool = False
    is_urgent: bool = False
    is_easy_apply: bool = False


class JobReviewRequest(BaseModel):
    status: JobReviewStatus
    job_snapshot: JobSnapshot | None = None


class JobReviewOut(BaseModel):
    id: str
    job_id: str
    status: JobReviewStatus
    job_snapshot: JobSnapshot | None = None
    reviewed_at: datetime


class ReviewedJobIdsOut(BaseModel):
    job_ids: list[str]


class UnsaveJobOut(BaseModel):
    removed: bool
