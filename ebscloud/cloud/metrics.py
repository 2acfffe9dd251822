"""Request latency, error and throttle metrics for EC2 API calls."""

from __future__ import annotations

import math
import threading
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Optional

API_DURATION = "cloudprovider_aws_api_request_duration_seconds"
API_ERRORS = "cloudprovider_aws_api_request_errors"
API_THROTTLES = "cloudprovider_aws_api_throttled_requests_total"

DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def _format_value(value: float) -> str:
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _labels(**labels: str) -> str:
    body = ",".join(f'{key}="{_escape(value)}"' for key, value in labels.items())
    return "{" + body + "}"


def _header(name: str, help_text: str, kind: str) -> list[str]:
    return [f"# HELP {name} [ALPHA] {help_text}", f"# TYPE {name} {kind}"]


@dataclass
class _Histogram:
    buckets: tuple[float, ...]
    counts: list[int] = field(default_factory=list)
    total: float = 0.0
    count: int = 0

    def __post_init__(self) -> None:
        self.counts = [0] * len(self.buckets)

    def observe(self, value: float) -> None:
        index = bisect_left(self.buckets, value)
        if index < len(self.counts):
            self.counts[index] += 1
        self.total += value
        self.count += 1


class AWSMetrics:
    """Collects per-request metrics and renders them in the Prometheus text format."""

    def __init__(self, buckets: tuple[float, ...] = DEFAULT_BUCKETS) -> None:
        self._buckets = tuple(sorted(buckets))
        self._lock = threading.Lock()
        self._durations: dict[str, _Histogram] = {}
        self._errors: dict[str, int] = {}
        self._throttles: dict[str, int] = {}

    def record(self, action_name: str, time_taken: float, error: Optional[BaseException]) -> None:
        """Count an error for the action, or observe its latency when it succeeded."""
        with self._lock:
            if error is not None:
                self._errors[action_name] = self._errors.get(action_name, 0) + 1
            else:
                histogram = self._durations.get(action_name)
                if histogram is None:
                    histogram = self._durations[action_name] = _Histogram(self._buckets)
                histogram.observe(time_taken)

    def record_throttle(self, operation: str) -> None:
        """Count a throttled request for the operation."""
        with self._lock:
            self._throttles[operation] = self._throttles.get(operation, 0) + 1

    def render(self) -> str:
        """Return all collected metrics in the Prometheus exposition format."""
        lines: list[str] = []
        with self._lock:
            if self._durations:
                lines += _header(API_DURATION, "Latency of AWS API calls", "histogram")
                for request in sorted(self._durations):
                    histogram = self._durations[request]
                    cumulative = 0
                    for bound, count in zip(histogram.buckets, histogram.counts):
                        cumulative += count
                        labels = _labels(request=request, le=_format_value(bound))
                        lines.append(f"{API_DURATION}_bucket{labels} {cumulative}")
                    labels = _labels(request=request, le="+Inf")
                    lines.append(f"{API_DURATION}_bucket{labels} {histogram.count}")
                    plain = _labels(request=request)
                    lines.append(f"{API_DURATION}_sum{plain} {_format_value(histogram.total)}")
                    lines.append(f"{API_DURATION}_count{plain} {histogram.count}")
            if self._errors:
                lines += _header(API_ERRORS, "AWS API errors", "counter")
                for request in sorted(self._errors):
                    lines.append(f"{API_ERRORS}{_labels(request=request)} {self._errors[request]}")
            if self._throttles:
                lines += _header(API_THROTTLES, "AWS API throttled requests", "counter")
                for operation in sorted(self._throttles):
                    labels = _labels(operation_name=operation)
                    lines.append(f"{API_THROTTLES}{labels} {self._throttles[operation]}")
        return "\n".join(lines) + "\n" if lines else ""


_registry: Optional[AWSMetrics] = None
_registry_lock = threading.Lock()


def register_metrics() -> AWSMetrics:
    """Return the process-wide metrics collector, creating it on first use."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = AWSMetrics()
        return _registry