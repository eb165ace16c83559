from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List


@dataclass
class MetricsSnapshot:
    turns_total: int
    fast_path_turns: int
    slow_path_turns: int
    fast_path_rate: float
    classifier_outcomes: Dict[str, int]
    validation_rejections: int
    handler_failures: int
    state_load_failures: int
    state_save_failures: int
    delivery_failures: int
    avg_turn_latency_ms: float = 0.0
    actions: Dict[str, int] = field(default_factory=dict)


class MetricsService:
    """In-process counters for the dialogue engine."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._fast_path_turns = 0
        self._slow_path_turns = 0
        self._classifier_outcomes: Counter[str] = Counter()
        self._actions: Counter[str] = Counter()
        self._validation_rejections = 0
        self._handler_failures = 0
        self._state_load_failures = 0
        self._state_save_failures = 0
        self._delivery_failures = 0
        self._turn_latencies: List[float] = []
        self._max_latency_samples = 1000

    def record_resolution(self, *, fast_path: bool) -> None:
        with self._lock:
            if fast_path:
                self._fast_path_turns += 1
            else:
                self._slow_path_turns += 1

    def record_classifier_outcome(self, outcome: str) -> None:
        with self._lock:
            self._classifier_outcomes[str(outcome)] += 1

    def record_action(self, action: str) -> None:
        with self._lock:
            self._actions[str(action)] += 1

    def record_validation_rejection(self) -> None:
        with self._lock:
            self._validation_rejections += 1

    def record_handler_failure(self) -> None:
        with self._lock:
            self._handler_failures += 1

    def record_state_load_failure(self) -> None:
        with self._lock:
            self._state_load_failures += 1

    def record_state_save_failure(self) -> None:
        with self._lock:
            self._state_save_failures += 1

    def record_delivery_failures(self, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._delivery_failures += count

    def record_turn_latency(self, latency_ms: float) -> None:
        with self._lock:
            self._turn_latencies.append(latency_ms)
            # Keep only recent samples
            if len(self._turn_latencies) > self._max_latency_samples:
                self._turn_latencies = self._turn_latencies[-self._max_latency_samples:]

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            total = self._fast_path_turns + self._slow_path_turns
            fast_rate = (self._fast_path_turns / total) if total else 0.0
            avg_latency = (
                sum(self._turn_latencies) / len(self._turn_latencies)
                if self._turn_latencies else 0.0
            )
            return MetricsSnapshot(
                turns_total=total,
                fast_path_turns=self._fast_path_turns,
                slow_path_turns=self._slow_path_turns,
                fast_path_rate=fast_rate,
                classifier_outcomes=dict(self._classifier_outcomes),
                validation_rejections=self._validation_rejections,
                handler_failures=self._handler_failures,
                state_load_failures=self._state_load_failures,
                state_save_failures=self._state_save_failures,
                delivery_failures=self._delivery_failures,
                avg_turn_latency_ms=avg_latency,
                actions=dict(self._actions),
            )


_metrics_service = MetricsService()


def get_metrics_service() -> MetricsService:
    return _metrics_service
