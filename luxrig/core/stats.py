"""UsageStats — in-memory counters for /api/ai/chat outcomes.

Not persisted and not correctness-critical; reset on restart.
"""
import time
from datetime import datetime, timezone
from typing import Callable

LOCAL_SAVING_USD = 0.02


class UsageStats:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self.start_time = clock()
        self.total_requests = 0
        self.local_requests = 0
        self.cloud_requests = 0
        self.cloud_recommended = 0   # recommended for cloud, never actually sent
        self.error_requests = 0
        self.cost_savings = 0.0

    def record(self, routed_to: str) -> None:
        self.total_requests += 1
        if routed_to == "local":
            self.local_requests += 1
            self.cost_savings += LOCAL_SAVING_USD
        elif routed_to == "cloud_recommended":
            self.cloud_recommended += 1
        else:
            self.cloud_requests += 1

    def record_error(self) -> None:
        self.total_requests += 1
        self.error_requests += 1

    def snapshot(self) -> dict:
        uptime_hours = (self._clock() - self.start_time) / 3600
        served = self.local_requests + self.cloud_requests + self.cloud_recommended
        success_rate = (
            f"{served / self.total_requests * 100:.1f}%" if self.total_requests else "0%"
        )
        return {
            "total_requests": self.total_requests,
            "local_requests": self.local_requests,
            "cloud_requests": self.cloud_requests,
            "cloud_recommended": self.cloud_recommended,
            "error_requests": self.error_requests,
            "cost_savings": f"${self.cost_savings:.2f}",
            "start_time": int(self.start_time * 1000),
            "uptime_hours": f"{uptime_hours:.2f}",
            "avg_requests_per_hour": f"{self.total_requests / max(uptime_hours, 0.1):.2f}",
            "success_rate": success_rate,
            "last_updated": datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
        }
