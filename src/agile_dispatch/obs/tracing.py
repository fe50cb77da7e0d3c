"""Dispatch tracing and cost accounting."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from agile_dispatch.types import DispatchStatus


@dataclass(slots=True)
class DispatchTrace:
    trace_id: str
    timestamp_utc: str
    command: str
    arguments: str
    status: str
    prompt_tokens: int
    output_tokens: int
    estimated_cost_usd: float
    latency_ms: float
    document: str | None = None
    reason: str | None = None


@dataclass(slots=True)
class CostModel:
    """Simple token pricing model (USD per 1K tokens)."""

    input_per_1k: float = 0.003
    output_per_1k: float = 0.015

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return (input_tokens / 1000.0) * self.input_per_1k + (
            output_tokens / 1000.0
        ) * self.output_per_1k


class TraceStore:
    """In-memory trace storage for API-level observability."""

    def __init__(self, *, cost_model: CostModel | None = None) -> None:
        self._records: dict[str, DispatchTrace] = {}
        self._cost_model = cost_model or CostModel()
        self._lock = threading.Lock()

    def create_record(
        self,
        *,
        command: str,
        arguments: str,
        status: DispatchStatus,
        prompt_tokens: int,
        output_tokens: int,
        latency_ms: float,
        document: str | None = None,
        reason: str | None = None,
    ) -> DispatchTrace:
        record = DispatchTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            command=command,
            arguments=arguments,
            status=status.value,
            prompt_tokens=prompt_tokens,
            output_tokens=output_tokens,
            estimated_cost_usd=self._cost_model.estimate_cost(prompt_tokens, output_tokens),
            latency_ms=latency_ms,
            document=document,
            reason=reason,
        )
        with self._lock:
            self._records[record.trace_id] = record
        return record

    def get(self, trace_id: str) -> DispatchTrace:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[DispatchTrace]:
        with self._lock:
            return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate core dispatch metrics for dashboard display."""
        with self._lock:
            records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_dispatches": 0,
                "completed": 0,
                "failed": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "total_prompt_tokens": 0,
                "total_output_tokens": 0,
                "total_estimated_cost_usd": 0.0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        completed = sum(1 for record in records if record.status == DispatchStatus.COMPLETED.value)

        return {
            "total_dispatches": total,
            "completed": completed,
            "failed": total - completed,
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "total_prompt_tokens": sum(record.prompt_tokens for record in records),
            "total_output_tokens": sum(record.output_tokens for record in records),
            "total_estimated_cost_usd": sum(record.estimated_cost_usd for record in records),
        }


class Timer:
    """Simple context timer used by the dispatcher."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
