from typing import Any, Literal

from pydantic import BaseModel, Field

ShiftName = Literal["morning", "afternoon", "evening", "overnight", "flexible"]


class JobMatcherSearchRequest(BaseModel):
    query: str | None = None
    second_chance_only: bool = False
    city: str | None = None
    state: str | None = None
    bus_required: bool = False
    rail_required: bool = False
    urgent_only: bool = False
    easy_apply_only: bool = False
    shifts: list[ShiftName] = Field(default_factory=list)
    limit: int = Field(default=5, ge=1, le=8)


class JobMatcherResult(BaseModel):
    id: str
    title: str
    company: str
    location: str | None = None
    description: str | None = None
    salary: str | None = None
    is_second_chance: bool = False
    second_chance_tier: str | None = None
    shifts: list[str] = Field(default_factory=list)
    transit_accessible: bool = False
    bus: bool = False
    rail: bool = False
    is_urgent: bool = False
    is_easy_apply: bool = False
    url: str | None = None


class JobMatcherSearchOut(BaseModel):
    jobs: list[JobMatcherResult] = Field(default_factory=list)
    total_found: int
    search_context: dict[str, Any] = Field(default_factory=dict)
