"""
Launch metrics.

Tracks launch counts, rolling average latency, and per-profile usage for a
launcher. Averages are updated sample by sample with the incremental mean:

    avg' = (avg * (n - 1) + sample) / n

Readers only ever receive deep copies of the recorded state.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field


class EnvironmentMetrics(BaseModel):
    """Usage statistics for one credential profile."""

    name: str
    usage_count: int = 0
    last_used: datetime | None = None
    average_latency: timedelta = timedelta(0)
    error_count: int = 0


class LauncherMetrics(BaseModel):
    """Aggregate launch statistics for one launcher."""

    total_launches: int = 0
    successful_launches: int = 0
    failed_launches: int = 0
    average_latency: timedelta = timedelta(0)
    last_launch_time: datetime | None = None
    environment_metrics: dict[str, EnvironmentMetrics] = Field(default_factory=dict)


def rolling_average(average: timedelta, sample: timedelta, count: int) -> timedelta:
    """Fold ``sample`` into an average over ``count`` samples (sample included)."""
    if count <= 1:
        return sample
    return (average * (count - 1) + sample) / count


class LaunchTicket:
    """Handle returned by MetricsRecorder.start() for one in-flight launch."""

    __slots__ = ("profile", "started_at", "started_monotonic", "finished")

    def __init__(self, profile: str | None, started_at: datetime, started_monotonic: float):
        self.profile = profile
        self.started_at = started_at
        self.started_monotonic = started_monotonic
        self.finished = False


class MetricsRecorder:
    """
    Thread-safe recorder for launch metrics.

    Every read-modify-write of the counters, the rolling averages and the
    per-profile map happens under one lock, so concurrent launches on the
    same launcher never lose updates.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._metrics = LauncherMetrics()
        # Completed samples per profile; usage_count also counts in-flight launches.
        self._completed: dict[str, int] = {}
        self._clock = clock
        self._now = now or (lambda: datetime.now(timezone.utc))

    def start(self, profile: str | None) -> LaunchTicket:
        """
        Record the start of a launch.

        Args:
            profile: Profile name, or None when the request had no profile

        Returns:
            Ticket to pass to finish()
        """
        started_at = self._now()
        ticket = LaunchTicket(profile, started_at, self._clock())

        with self._lock:
            self._metrics.total_launches += 1
            self._metrics.last_launch_time = started_at

            if profile is not None:
                env_metrics = self._metrics.environment_metrics.get(profile)
                if env_metrics is None:
                    env_metrics = EnvironmentMetrics(name=profile)
                    self._metrics.environment_metrics[profile] = env_metrics
                env_metrics.usage_count += 1
                env_metrics.last_used = started_at

        return ticket

    def finish(
        self,
        ticket: LaunchTicket,
        *,
        success: bool,
        latency: timedelta | None = None,
    ) -> None:
        """
        Record the completion of a launch started with start().

        Args:
            ticket: Ticket returned by start()
            success: Whether the launch succeeded
            latency: Override for the measured latency (defaults to elapsed time)
        """
        if ticket.finished:
            return
        ticket.finished = True

        if latency is None:
            latency = timedelta(seconds=self._clock() - ticket.started_monotonic)

        with self._lock:
            metrics = self._metrics
            if success:
                metrics.successful_launches += 1
            else:
                metrics.failed_launches += 1

            completed = metrics.successful_launches + metrics.failed_launches
            metrics.average_latency = rolling_average(metrics.average_latency, latency, completed)

            if ticket.profile is None:
                return

            env_metrics = metrics.environment_metrics.get(ticket.profile)
            if env_metrics is None:
                return
            if not success:
                env_metrics.error_count += 1
            profile_completed = self._completed.get(ticket.profile, 0) + 1
            self._completed[ticket.profile] = profile_completed
            env_metrics.average_latency = rolling_average(
                env_metrics.average_latency, latency, profile_completed
            )

    def snapshot(self) -> LauncherMetrics:
        """Return a deep, independent copy of the current metrics."""
        with self._lock:
            return self._metrics.model_copy(deep=True)


__all__ = [
    "EnvironmentMetrics",
    "LauncherMetrics",
    "LaunchTicket",
    "MetricsRecorder",
    "rolling_average",
]
