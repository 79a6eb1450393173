from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


def utc_now() -> datetime:
    return datetime.utcnow()


class CallStatus(str, Enum):
    queued = "queued"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"
    no_answer = "no_answer"
    busy = "busy"


FINISHED_CALL_STATUSES = frozenset(
    {CallStatus.completed, CallStatus.failed, CallStatus.no_answer, CallStatus.busy}
)


class CallLogRequest(BaseModel):
    lead_phone: str = Field(min_length=8, max_length=20)
    status: CallStatus
    duration_seconds: int = Field(default=0, ge=0, le=86400)

    @model_validator(mode="after")
    def validate_duration(self) -> "CallLogRequest":
        if self.status in {CallStatus.queued, CallStatus.no_answer, CallStatus.busy}:
            if self.duration_seconds:
                raise ValueError(f"{self.status.value} calls cannot carry a duration")
        return self


class CallRecord(BaseModel):
    id: str
    campaign_id: str
    lead_phone: str
    status: CallStatus
    duration_seconds: int = 0
    created_at_utc: datetime


class CallLogResponse(BaseModel):
    call_id: str
    campaign_id: str
    status: CallStatus


class CallStats(BaseModel):
    campaign_id: str
    total_calls: int = 0
    completed_calls: int = 0
    failed_calls: int = 0
    no_answer_calls: int = 0
    busy_calls: int = 0
    in_progress_calls: int = 0
    queued_calls: int = 0
    connect_rate: float = 0.0
    average_duration_seconds: float = 0.0
    total_duration_seconds: int = 0


class CampaignStatsResponse(BaseModel):
    stats: CallStats


class CompletionRequest(BaseModel):
    prompt: str = Field(min_length=1, max_length=20000)
    system_prompt: Optional[str] = Field(default=None, max_length=20000)


class CompletionResponse(BaseModel):
    content: str
    model: str
