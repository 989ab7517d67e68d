# Copyright 2024-2025 Amiable Development
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
ChatMetrics - In-process telemetry for GhostChat provider calls.

Tracks, per provider selector:
- Reply latency (p50, p95)
- Failures by kind (auth, rate limit, server, parse, transport)
- Degraded status from latency and error-rate thresholds

Nothing is exported or persisted; the numbers live as long as the session.

Version: 1.0.0
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, List, Any
import threading
import logging

from ghostchat.errors import FailureKind

logger = logging.getLogger(__name__)


@dataclass
class ReplyMetric:
    """
    A successful provider reply.

    Attributes:
        provider: Provider selector that answered
        latency_ms: Round trip in milliseconds
        timestamp: When the reply was recorded
    """

    provider: str
    latency_ms: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class FailureMetric:
    """
    A provider call that did not produce a reply.

    Attributes:
        provider: Provider selector that failed
        kind: Failure class
        status_code: HTTP status, if a response arrived
        timestamp: When the failure was recorded
    """

    provider: str
    kind: FailureKind
    status_code: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)


class ChatMetrics:
    """
    Telemetry for provider dispatch.

    Example:
        metrics = ChatMetrics()
        metrics.record_reply("openai:gpt-4", latency_ms=420)
        metrics.record_failure("anthropic:claude", FailureKind.RATE_LIMITED, 429)

        stats = metrics.get_latency_stats("openai:gpt-4")
        print(f"p50: {stats['p50']}ms")
    """

    def __init__(
        self,
        degraded_latency_threshold_ms: int = 10000,
        degraded_error_rate_threshold: float = 0.5,
    ):
        """
        Initialize ChatMetrics.

        Args:
            degraded_latency_threshold_ms: Latency threshold for degraded status
            degraded_error_rate_threshold: Error rate threshold for degraded status
        """
        self._lock = threading.RLock()
        self._replies: List[ReplyMetric] = []
        self._failures: List[FailureMetric] = []

        self.degraded_latency_threshold_ms = degraded_latency_threshold_ms
        self.degraded_error_rate_threshold = degraded_error_rate_threshold

    def record_reply(self, provider: str, latency_ms: int) -> None:
        with self._lock:
            self._replies.append(ReplyMetric(provider=provider, latency_ms=latency_ms))

        logger.debug(f"Recorded reply: provider={provider}, latency={latency_ms}ms")

    def record_failure(
        self,
        provider: str,
        kind: FailureKind,
        status_code: Optional[int] = None,
    ) -> None:
        with self._lock:
            self._failures.append(
                FailureMetric(provider=provider, kind=kind, status_code=status_code)
            )

        logger.debug(f"Recorded failure: provider={provider}, kind={kind.name}")

    def get_replies(self) -> List[ReplyMetric]:
        with self._lock:
            return list(self._replies)

    def get_failures(self) -> List[FailureMetric]:
        with self._lock:
            return list(self._failures)

    def get_failure_counts(self, provider: Optional[str] = None) -> Dict[FailureKind, int]:
        """Count failures by kind, optionally for one provider."""
        counts = {kind: 0 for kind in FailureKind}
        with self._lock:
            for failure in self._failures:
                if provider is None or failure.provider == provider:
                    counts[failure.kind] += 1
        return counts

    def get_latency_stats(self, provider: str) -> Dict[str, Any]:
        """
        Get latency statistics for a provider.

        Returns:
            Dict with count, avg_ms, p50, p95 statistics
        """
        with self._lock:
            latencies = [m.latency_ms for m in self._replies if m.provider == provider]

        if not latencies:
            return {"count": 0, "avg_ms": 0, "p50": 0, "p95": 0}

        latencies_sorted = sorted(latencies)
        count = len(latencies)

        return {
            "count": count,
            "avg_ms": sum(latencies) // count,
            "p50": self._percentile(latencies_sorted, 50),
            "p95": self._percentile(latencies_sorted, 95),
        }

    def _percentile(self, sorted_data: List[int], percentile: int) -> int:
        """Calculate percentile from sorted data."""
        if not sorted_data:
            return 0
        k = (len(sorted_data) - 1) * (percentile / 100)
        f = int(k)
        c = f + 1 if f < len(sorted_data) - 1 else f
        return int(sorted_data[f] + (sorted_data[c] - sorted_data[f]) * (k - f))

    def get_error_rate(self, provider: Optional[str] = None) -> float:
        """
        Failures as a fraction of all calls, optionally for one provider.

        Returns:
            Error rate as float (0.0 to 1.0)
        """
        with self._lock:
            if provider:
                replies = sum(1 for m in self._replies if m.provider == provider)
                failures = sum(1 for f in self._failures if f.provider == provider)
            else:
                replies = len(self._replies)
                failures = len(self._failures)

        total = replies + failures
        if total == 0:
            return 0.0

        return failures / total

    def is_degraded(self) -> bool:
        """
        True when the latest reply was slow or the error rate is too high.
        """
        with self._lock:
            if self._replies:
                if self._replies[-1].latency_ms > self.degraded_latency_threshold_ms:
                    return True

            if self.get_error_rate() > self.degraded_error_rate_threshold:
                return True

        return False

    def export(self) -> Dict[str, Any]:
        """Export metrics as a dictionary."""
        with self._lock:
            providers = set(m.provider for m in self._replies) | set(
                f.provider for f in self._failures
            )

            return {
                "total_replies": len(self._replies),
                "total_failures": len(self._failures),
                "providers": {
                    p: {
                        "latency": self.get_latency_stats(p),
                        "error_rate": self.get_error_rate(p),
                        "failures": {
                            k.name.lower(): v
                            for k, v in self.get_failure_counts(p).items()
                        },
                    }
                    for p in providers
                },
                "error_rate": self.get_error_rate(),
                "is_degraded": self.is_degraded(),
            }

    def reset(self) -> None:
        """Clear all recorded metrics."""
        with self._lock:
            self._replies.clear()
            self._failures.clear()
        logger.info("Metrics reset")
