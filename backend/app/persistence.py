from __future__ import annotations

from datetime import datetime
from pathlib import Path
from threading import Lock

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from backend.app.models import CallRecord, CallStatus


def _normalize_database_url(database_url: str) -> str:
    value = database_url.strip()
    if value.startswith("sqlite:///"):
        sqlite_path = value[len("sqlite:///") :].split("?", 1)[0]
        if sqlite_path and sqlite_path != ":memory:":
            path = Path(sqlite_path)
            if path.parent:
                path.parent.mkdir(parents=True, exist_ok=True)
        return value
    if "://" in value:
        return value
    path = Path(value)
    if path.parent:
        path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{str(path).replace(chr(92), '/')}"


class CallPersistence:
    """
    Durable call log. Uses SQLAlchemy and supports both SQLite and PostgreSQL URLs.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url = _normalize_database_url(database_url)
        self._lock = Lock()
        self.engine: Engine = create_engine(
            self.database_url,
            future=True,
            pool_pre_ping=True,
        )
        self.metadata = MetaData()
        self.call_records = Table(
            "call_records",
            self.metadata,
            Column("id", String(255), primary_key=True),
            Column("campaign_id", String(255), nullable=False, index=True),
            Column("lead_phone", String(20), nullable=False),
            Column("status", String(50), nullable=False),
            Column("duration_seconds", Integer, nullable=False),
            Column("created_at_utc", DateTime, nullable=False),
        )
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self.metadata.create_all(self.engine)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
            return True
        except SQLAlchemyError:
            return False

    def insert_call(self, record: CallRecord) -> None:
        payload = {
            "campaign_id": record.campaign_id,
            "lead_phone": record.lead_phone,
            "status": record.status.value,
            "duration_seconds": record.duration_seconds,
            "created_at_utc": record.created_at_utc,
        }
        with self._lock:
            with self.engine.begin() as conn:
                existing = conn.execute(
                    select(self.call_records.c.id).where(self.call_records.c.id == record.id)
                ).first()
                if existing:
                    conn.execute(
                        self.call_records.update()
                        .where(self.call_records.c.id == record.id)
                        .values(**payload)
                    )
                else:
                    conn.execute(self.call_records.insert().values(id=record.id, **payload))

    def list_calls(self) -> list[CallRecord]:
        with self._lock:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    select(
                        self.call_records.c.id,
                        self.call_records.c.campaign_id,
                        self.call_records.c.lead_phone,
                        self.call_records.c.status,
                        self.call_records.c.duration_seconds,
                        self.call_records.c.created_at_utc,
                    ).order_by(self.call_records.c.created_at_utc.asc())
                ).all()

        output: list[CallRecord] = []
        allowed_statuses = {status.value for status in CallStatus}
        for row in rows:
            if row.status not in allowed_statuses:
                continue
            output.append(
                CallRecord(
                    id=row.id,
                    campaign_id=row.campaign_id,
                    lead_phone=row.lead_phone,
                    status=CallStatus(row.status),
                    duration_seconds=int(row.duration_seconds or 0),
                    created_at_utc=row.created_at_utc or datetime.utcnow(),
                )
            )
        return output
