from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

SenderStatus = Literal["pending", "approved", "blocked"]
InboundMessageStatus = Literal["pending_review", "approved", "rejected", "processed"]


class SenderOut(BaseModel):
    id: str
    phone: str
    name: str | None = None
    company: str | None = None
    email: str | None = None
    status: SenderStatus
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class SenderUpsertRequest(BaseModel):
    phone: str = Field(min_length=3)
    name: str | None = None
    company: str | None = None
    email: str | None = None


class SenderUpdateRequest(BaseModel):
    name: str | None = None
    company: str | None = None
    email: str | None = None
    notes: str | None = None


class SenderStatusRequest(BaseModel):
    status: SenderStatus


class InboundMessageCreateRequest(BaseModel):
    phone: str = Field(min_length=3)
    body: str
    twilio_message_sid: str = Field(min_length=1)
    sender_id: str | None = None
    status: InboundMessageStatus = "pending_review"


class InboundMessageStatusRequest(BaseModel):
    status: InboundMessageStatus


class InboundMessageOut(BaseModel):
    id: str
    phone: str
    body: str
    twilio_message_sid: str
    sender_id: str | None = None
    status: InboundMessageStatus
    submission_id: str | None = None
    created_at: datetime
    sender_name: str | None = None
    sender_status: SenderStatus | None = None


class InboundSmsRequest(BaseModel):
    phone: str = Field(min_length=3)
    body: str = Field(min_length=1)
    message_sid: str = Field(min_length=1)


class InboundSmsOut(BaseModel):
    action: Literal["submitted", "rejected", "closed", "ignored", "duplicate"]
    message_id: str | None = None
    submission_id: str | None = None
