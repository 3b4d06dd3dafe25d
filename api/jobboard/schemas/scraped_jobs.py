from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

ScrapedJobStatus = Literal["scraped", "enriching", "enriched", "indexed", "failed"]
SecondChanceTier = Literal["high", "medium", "low", "unlikely", "unknown"]
ShiftSource = Literal["workSchedule", "ai", "regex", "unknown"]


class ScrapedJobCreateRequest(BaseModel):
    external_id: str = Field(min_length=1)
    source: str = Field(min_length=1)
    company: str
    title: str
    description: str | None = None
    url: str
    city: str | None = None
    state: str | None = None
    lat: float | None = None
    lng: float | None = None
    pay_min: float | None = None
    pay_max: float | None = None
    pay_type: str | None = None
    is_urgent: bool = False
    is_easy_apply: bool = False
    posted_at: datetime | None = None
    work_schedule: list[str] | None = None
    onet_code: str | None = None
    transit_grade: str | None = None
    transit_distance_miles: float | None = Field(default=None, ge=0.0)
    transit_nearby_stops: int | None = Field(default=None, ge=0)
    transit_nearby_rail: bool | None = None


class ScrapedJobEnrichRequest(BaseModel):
    transit_score: str | None = None
    transit_distance: float | None = None
    bus_accessible: bool | None = None
    rail_accessible: bool | None = None
    shift_morning: bool | None = None
    shift_afternoon: bool | None = None
    shift_evening: bool | None = None
    shift_overnight: bool | None = None
    shift_flexible: bool | None = None
    shift_source: ShiftSource | None = None
    second_chance: bool | None = None
    second_chance_tier: SecondChanceTier | None = None
    second_chance_score: float | None = None
    second_chance_confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    second_chance_signals: list[str] | None = None
    second_chance_reasoning: str | None = None
    no_background_check: bool | None = None


class ScrapedJobIndexedRequest(BaseModel):
    typesense_id: str = Field(min_length=1)


class ScrapedJobStatusRequest(BaseModel):
    status: ScrapedJobStatus
    failure_reason: str | None = None
    failure_stage: str | None = None


class ScrapedJobOut(BaseModel):
    id: str
    external_id: str
    source: str
    company: str
    title: str
    description: str | None = None
    url: str
    city: str | None = None
    state: str | None = None
    lat: float | None = None
    lng: float | None = None
    pay_min: float | None = None
    pay_max: float | None = None
    pay_type: str | None = None
    is_urgent: bool = False
    is_easy_apply: bool = False
    posted_at: datetime | None = None
    work_schedule: list[str] | None = None
    onet_code: str | None = None
    transit_grade: str | None = None
    transit_distance_miles: float | None = Field(default=None, ge=0.0)
    transit_nearby_stops: int | None = Field(default=None, ge=0)
    transit_nearby_rail: bool | None = None
    transit_score: str | None = None
    transit_distance: float | None = None
    bus_accessible: bool | None = None
    rail_accessible: bool | None = None
    shift_morning: bool | None = None
    shift_afternoon: bool | None = None
    shift_evening: bool | None = None
    shift_overnight: bool | None = None
    shift_flexible: bool | None = None
    shift_source: str | None = None
    second_chance: bool | None = None
    second_chance_tier: str | None = None
    second_chance_score: float | None = None
    second_chance_confidence: float | None = None
    second_chance_signals: list[str] | None = None
    second_chance_reasoning: str | None = None
    no_background_check: bool | None = None
    status: ScrapedJobStatus
    scraped_at: datetime
    enriched_at: datetime | None = None
    indexed_at: datetime | None = None
    failure_reason: str | None = None
    failure_stage: str | None = None
    typesense_id: str | None = None


class ScrapedJobStatsOut(BaseModel):
    scraped: int = 0
    enriching: int = 0
    enriched: int = 0
    indexed: int = 0
    failed: int = 0
    total: int = 0


class ScrapedJobDeleteRequest(BaseModel):
    id: str | None = None
    typesense_id: str | None = None


class ScrapedJobBulkDeleteRequest(BaseModel):
    ids: list[str] = Field(min_length=1, max_length=500)


class ScrapedJobDeleteOut(BaseModel):
    success: bool
    external_id: str
    source: str
    typesense_id: str | None = None


class ScrapedJobDeleteResult(BaseModel):
    id: str
    deleted: bool
    external_id: str | None = None
    source: str | None = None
    typesense_id: str | None = None
    error: str | None = None


class ScrapedJobBulkDeleteOut(BaseModel):
    success: bool
    deleted: int
    failed: int
    results: list[ScrapedJobDeleteResult] = Field(default_factory=list)


class NukeAllRequest(BaseModel):
    confirm: str


class NukeAllOut(BaseModel):
    success: bool
    deleted: int


class CacheClearRequest(BaseModel):
    clear_all: bool | None = None
    start_date: str | None = None
    end_date: str | None = None
