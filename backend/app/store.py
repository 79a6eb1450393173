from __future__ import annotations

from threading import RLock
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from backend.app.models import (
    FINISHED_CALL_STATUSES,
    CallLogRequest,
    CallRecord,
    CallStats,
    CallStatus,
    utc_now,
)

if TYPE_CHECKING:
    from backend.app.persistence import CallPersistence


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:10]}"


class StoreValidationError(Exception):
    pass


class CallStore:
    def __init__(self, persistence: Optional["CallPersistence"] = None) -> None:
        self._lock = RLock()
        self.persistence = persistence
        self.calls_by_campaign: dict[str, list[CallRecord]] = {}

        if self.persistence:
            for record in self.persistence.list_calls():
                self.calls_by_campaign.setdefault(record.campaign_id, []).append(record)

    def record_call(self, campaign_id: str, request: CallLogRequest) -> CallRecord:
        campaign_key = self._campaign_key(campaign_id)
        with self._lock:
            record = CallRecord(
                id=new_id("call"),
                campaign_id=campaign_key,
                lead_phone=request.lead_phone.strip(),
                status=request.status,
                duration_seconds=request.duration_seconds,
                created_at_utc=utc_now(),
            )
            self.calls_by_campaign.setdefault(campaign_key, []).append(record)
            if self.persistence:
                self.persistence.insert_call(record)
            return record

    def list_calls(self, campaign_id: str) -> list[CallRecord]:
        campaign_key = self._campaign_key(campaign_id)
        with self._lock:
            return list(self.calls_by_campaign.get(campaign_key, []))

    def get_call_stats(self, campaign_id: str) -> CallStats:
        campaign_key = self._campaign_key(campaign_id)
        calls = self.list_calls(campaign_key)

        counts = {status: 0 for status in CallStatus}
        for call in calls:
            counts[call.status] += 1

        completed_durations = [
            call.duration_seconds for call in calls if call.status == CallStatus.completed
        ]
        finished = sum(counts[status] for status in FINISHED_CALL_STATUSES)
        connect_rate = (
            round((counts[CallStatus.completed] / finished) * 100, 2) if finished else 0.0
        )
        average_duration = (
            round(sum(completed_durations) / len(completed_durations), 2)
            if completed_durations
            else 0.0
        )
        return CallStats(
            campaign_id=campaign_key,
            total_calls=len(calls),
            completed_calls=counts[CallStatus.completed],
            failed_calls=counts[CallStatus.failed],
            no_answer_calls=counts[CallStatus.no_answer],
            busy_calls=counts[CallStatus.busy],
            in_progress_calls=counts[CallStatus.in_progress],
            queued_calls=counts[CallStatus.queued],
            connect_rate=connect_rate,
            average_duration_seconds=average_duration,
            total_duration_seconds=sum(call.duration_seconds for call in calls),
        )

    @staticmethod
    def _campaign_key(campaign_id: str) -> str:
        value = (campaign_id or "").strip()
        if not value:
            raise StoreValidationError("campaign id is required")
        return value
