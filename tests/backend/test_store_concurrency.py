from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from backend.app.models import CallLogRequest, CallStatus
from backend.app.store import CallStore


def test_call_write_and_stats_read_concurrent() -> None:
    store = CallStore()
    read_errors: list[Exception] = []

    def writer(index: int) -> None:
        request = CallLogRequest(
            lead_phone=f"90000{index:05d}"[-10:],
            status=CallStatus.completed if index % 2 else CallStatus.failed,
            duration_seconds=30 if index % 2 else 0,
        )
        store.record_call("cmp_load", request)

    def reader() -> None:
        for _ in range(300):
            try:
                store.get_call_stats("cmp_load")
            except Exception as exc:  # pragma: no cover - regression trap
                read_errors.append(exc)

    with ThreadPoolExecutor(max_workers=10) as executor:
        futures = [executor.submit(writer, i) for i in range(300)]
        futures.extend(executor.submit(reader) for _ in range(4))
        for future in futures:
            future.result()

    assert not read_errors
    stats = store.get_call_stats("cmp_load")
    assert stats.total_calls == 300
    assert stats.completed_calls == 150
    assert stats.connect_rate == 50.0
