from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from threading import Lock

from fastapi import Request

logger = logging.getLogger("prospect_ai")


@dataclass
class MetricsSnapshot:
    requests_total: int
    requests_5xx: int
    total_latency_ms: float
    completion_retries: int = 0
    completions_by_outcome: dict[str, int] = field(default_factory=dict)


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self._requests_total = 0
        self._requests_5xx = 0
        self._total_latency_ms = 0.0
        self._by_route_status: dict[tuple[str, int], int] = {}
        self._completion_retries = 0
        self._completions_by_outcome: dict[str, int] = {}

    def record(self, *, route: str, status_code: int, latency_ms: float) -> None:
        with self._lock:
            self._requests_total += 1
            if status_code >= 500:
                self._requests_5xx += 1
            self._total_latency_ms += latency_ms
            key = (route, status_code)
            self._by_route_status[key] = self._by_route_status.get(key, 0) + 1

    def record_completion(self, outcome: str) -> None:
        with self._lock:
            self._completions_by_outcome[outcome] = (
                self._completions_by_outcome.get(outcome, 0) + 1
            )

    def record_completion_retry(self) -> None:
        with self._lock:
            self._completion_retries += 1

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                requests_total=self._requests_total,
                requests_5xx=self._requests_5xx,
                total_latency_ms=self._total_latency_ms,
                completion_retries=self._completion_retries,
                completions_by_outcome=dict(self._completions_by_outcome),
            )

    def to_prometheus(self) -> str:
        snap = self.snapshot()
        avg_latency = (
            snap.total_latency_ms / snap.requests_total if snap.requests_total else 0.0
        )
        lines = [
            "# HELP prospect_ai_requests_total Total HTTP requests",
            "# TYPE prospect_ai_requests_total counter",
            f"prospect_ai_requests_total {snap.requests_total}",
            "# HELP prospect_ai_requests_5xx_total Total 5xx HTTP requests",
            "# TYPE prospect_ai_requests_5xx_total counter",
            f"prospect_ai_requests_5xx_total {snap.requests_5xx}",
            "# HELP prospect_ai_request_avg_latency_ms Average request latency ms",
            "# TYPE prospect_ai_request_avg_latency_ms gauge",
            f"prospect_ai_request_avg_latency_ms {avg_latency:.2f}",
            "# HELP prospect_ai_completion_retries_total AI completion attempts retried",
            "# TYPE prospect_ai_completion_retries_total counter",
            f"prospect_ai_completion_retries_total {snap.completion_retries}",
        ]
        for outcome, count in sorted(snap.completions_by_outcome.items()):
            lines.append(f'prospect_ai_completions_total{{outcome="{outcome}"}} {count}')
        with self._lock:
            for (route, status_code), count in sorted(self._by_route_status.items()):
                lines.append(
                    'prospect_ai_route_requests_total'
                    f'{{route="{route}",status="{status_code}"}} {count}'
                )
        return "\n".join(lines) + "\n"


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


async def observe_request(
    request: Request,
    call_next,
    *,
    metrics: MetricsRegistry,
):
    start = time.perf_counter()
    path = request.url.path
    try:
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000.0
        metrics.record(route=path, status_code=response.status_code, latency_ms=latency_ms)
        logger.info(
            "request_complete method=%s path=%s status=%s latency_ms=%.2f",
            request.method,
            path,
            response.status_code,
            latency_ms,
        )
        return response
    except Exception:
        latency_ms = (time.perf_counter() - start) * 1000.0
        metrics.record(route=path, status_code=500, latency_ms=latency_ms)
        logger.exception(
            "request_failed method=%s path=%s latency_ms=%.2f",
            request.method,
            path,
            latency_ms,
        )
        raise
