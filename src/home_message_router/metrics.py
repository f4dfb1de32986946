"""Runtime counters for the message router.

Counts what happened to every inbound message (interpreted, translated,
dropped, malformed) and to every publish, so a running router can be
inspected without a debugger.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class RouterCounters:
    """Raw counters collected by ``RouterMetrics``."""

    messages_received: int = 0
    messages_malformed: int = 0
    messages_dropped: int = 0
    commands_interpreted: int = 0
    replies_translated: int = 0
    replies_unmatched: int = 0
    publishes: int = 0
    publish_failures: int = 0
    handler_errors: int = 0
    processing_times: deque[float] = field(default_factory=lambda: deque(maxlen=1000))
    uptime_start: datetime = field(default_factory=datetime.now)


class RouterMetrics:
    """Thread-safe counters and processing-time samples."""

    def __init__(self, router_name: str):
        self.router_name = router_name
        self.counters = RouterCounters()
        self._active_timers: dict[str, float] = {}
        self._timer_sequence = 0
        self._lock = threading.Lock()
        self._logger = logging.getLogger(f"{__name__}.{router_name}")

    def start_timer(self) -> str:
        with self._lock:
            self._timer_sequence += 1
            timer_id = f"message_{self._timer_sequence}"
            self._active_timers[timer_id] = time.perf_counter()
        return timer_id

    def end_timer(self, timer_id: str) -> float | None:
        """Stop a timer and record its duration in seconds; None for unknown ids."""
        with self._lock:
            start_time = self._active_timers.pop(timer_id, None)
            if start_time is None:
                return None
            duration = time.perf_counter() - start_time
            self.counters.processing_times.append(duration)
            return duration

    def increment(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self.counters, counter, getattr(self.counters, counter) + amount)

    def record_publish(self, success: bool) -> None:
        self.increment("publishes" if success else "publish_failures")

    def summary(self) -> dict[str, Any]:
        with self._lock:
            now = datetime.now()
            uptime = (now - self.counters.uptime_start).total_seconds()
            times = sorted(self.counters.processing_times)
            if times:
                avg_ms = sum(times) / len(times) * 1000
                p95_ms = times[int(len(times) * 0.95)] * 1000
            else:
                avg_ms = p95_ms = 0.0
            total_publishes = self.counters.publishes + self.counters.publish_failures

            return {
                "router_name": self.router_name,
                "timestamp": now.isoformat(),
                "uptime_seconds": uptime,
                "inbound": {
                    "received": self.counters.messages_received,
                    "malformed": self.counters.messages_malformed,
                    "dropped": self.counters.messages_dropped,
                    "handler_errors": self.counters.handler_errors,
                    "latency_ms": {"avg": avg_ms, "p95": p95_ms},
                },
                "commands": {"interpreted": self.counters.commands_interpreted},
                "device_replies": {
                    "translated": self.counters.replies_translated,
                    "unmatched": self.counters.replies_unmatched,
                },
                "mqtt": {
                    "publishes": self.counters.publishes,
                    "publish_failures": self.counters.publish_failures,
                    "success_rate": self.counters.publishes / total_publishes if total_publishes else 0,
                },
            }

    def prometheus(self) -> str:
        """Render the counters in Prometheus text exposition format."""
        summary = self.summary()
        label = f'{{router="{self.router_name}"}}'
        series = [
            ("router_messages_received_total", "counter", summary["inbound"]["received"]),
            ("router_messages_malformed_total", "counter", summary["inbound"]["malformed"]),
            ("router_messages_dropped_total", "counter", summary["inbound"]["dropped"]),
            ("router_commands_interpreted_total", "counter", summary["commands"]["interpreted"]),
            ("router_device_replies_translated_total", "counter", summary["device_replies"]["translated"]),
            ("router_device_replies_unmatched_total", "counter", summary["device_replies"]["unmatched"]),
            ("router_mqtt_publishes_total", "counter", summary["mqtt"]["publishes"]),
            ("router_mqtt_publish_failures_total", "counter", summary["mqtt"]["publish_failures"]),
            ("router_uptime_seconds", "gauge", round(summary["uptime_seconds"], 1)),
        ]
        lines = []
        for name, metric_type, value in series:
            lines.append(f"# TYPE {name} {metric_type}")
            lines.append(f"{name}{label} {value}")
        return "\n".join(lines)

    def reset(self) -> None:
        with self._lock:
            self.counters = RouterCounters()
            self._active_timers.clear()
        self._logger.info("Metrics reset for router: %s", self.router_name)

    def export_to_json(self) -> str:
        return json.dumps(self.summary(), indent=2)
