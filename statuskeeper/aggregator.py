"""
Aggregator: rolls raw samples up into the status view served to dashboards.

Everything here is derived on demand from the sample store and the current
snapshot; nothing is persisted, so the same store contents and the same
``now`` always produce the same view.
"""

import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from statuskeeper.config import Config
from statuskeeper.core import (
    ISSUES,
    ONLINE,
    Clock,
    Incident,
    ServiceSample,
    ServiceTarget,
    StorageError,
    now_ms,
)
from statuskeeper.logging_config import get_logger
from statuskeeper.store import SampleStore
from statuskeeper.targets import flatten_targets

logger = get_logger(__name__)

MS_PER_MINUTE = 60 * 1000
UPTIME_DECIMALS = 2


@dataclass(frozen=True)
class BucketStatus:
    """Summary of one history bucket."""
    status: str
    response_time: int | None


@dataclass
class ServiceView:
    """Rolled-up state of one service over the history window."""
    name: str
    description: str
    url: str
    hide_url: bool
    expected_response_code: int
    status: str | None
    response_time: int | None
    latest_timestamp: int | None
    uptime_percentage: float | None
    hourly_status: list[BucketStatus | None]
    incidents: list[str] = field(default_factory=list)


@dataclass
class CategoryView:
    name: str
    description: str
    services: list[ServiceView]


@dataclass
class StatusView:
    """The full status page payload."""
    categories: list[CategoryView]
    overall_status: str
    last_update: int
    time_range: str

    def to_dict(self) -> dict[str, Any]:
        """Render with the key names used by the status page."""
        return {
            "categories": [asdict(category) for category in self.categories],
            "overallStatus": self.overall_status,
            "lastUpdate": self.last_update,
            "timeRange": self.time_range,
        }


def bucket_count(window_hours: float, interval_minutes: float) -> int:
    """Number of interval-wide buckets that fit in the window."""
    return math.floor(window_hours * 60 / interval_minutes)


def format_time_range(window_hours: float) -> str:
    """Human label for the history window."""
    if window_hours <= 24:
        return f"{window_hours:g} hours"
    return f"{round(window_hours / 24)} days"


def bucketize(
    samples: Sequence[ServiceSample],
    intervals: int,
    interval_ms: int,
    now: int
) -> list[BucketStatus | None]:
    """
    Summarise samples into ``intervals`` buckets, oldest first.

    Bucket ``i`` ends at ``now - (intervals - 1 - i) * interval_ms`` and
    takes the most recent sample at or before that instant.

    Args:
        samples: Samples for one target, oldest first
    """
    buckets: list[BucketStatus | None] = []
    position = 0
    latest: ServiceSample | None = None

    for i in range(intervals):
        bucket_end = now - (intervals - 1 - i) * interval_ms
        while position < len(samples) and samples[position].timestamp <= bucket_end:
            latest = samples[position]
            position += 1
        if latest is None:
            buckets.append(None)
        else:
            buckets.append(BucketStatus(status=latest.status, response_time=latest.response_time))

    return buckets


def uptime_percentage(buckets: Sequence[BucketStatus | None]) -> float | None:
    """Share of buckets that were online, empty buckets counting as not online."""
    if not buckets:
        return None
    online = sum(1 for bucket in buckets if bucket is not None and bucket.status == ONLINE)
    return round(online / len(buckets) * 100, UPTIME_DECIMALS)


def build_service_view(  # pylint: disable=too-many-arguments,too-many-positional-arguments
    target: ServiceTarget,
    samples: Sequence[ServiceSample],
    window_hours: float,
    interval_minutes: float,
    now: int,
    incidents: Iterable[Incident] = ()
) -> ServiceView:
    """
    Build the view of one target from its samples.

    Samples outside ``[now - window, now]`` are ignored.
    """
    window_start = now - int(window_hours * 60 * MS_PER_MINUTE)
    in_window = [s for s in samples if window_start <= s.timestamp <= now]
    in_window.sort(key=lambda s: s.timestamp)

    intervals = bucket_count(window_hours, interval_minutes)
    buckets = bucketize(in_window, intervals, int(interval_minutes * MS_PER_MINUTE), now)
    latest = in_window[-1] if in_window else None

    return ServiceView(
        name=target.name,
        description=target.description,
        url=target.url,
        hide_url=target.hide_url,
        expected_response_code=target.expected_response_code,
        status=latest.status if latest else None,
        response_time=latest.response_time if latest else None,
        latest_timestamp=latest.timestamp if latest else None,
        uptime_percentage=uptime_percentage(buckets),
        hourly_status=buckets,
        incidents=[
            incident.title for incident in incidents
            if incident.affects(target.url) and incident.is_ongoing(now)
        ],
    )


def overall_status(views: Iterable[ServiceView]) -> str:
    """``online`` only when every service's latest status is online."""
    return ONLINE if all(view.status == ONLINE for view in views) else ISSUES


class Aggregator:
    """Builds status views from a sample store."""

    def __init__(self, store: SampleStore, clock: Clock = now_ms) -> None:
        self.store = store
        self.clock = clock

    def _load_window(
        self,
        since: int,
        now: int,
        url: str | None = None
    ) -> dict[str, list[ServiceSample]]:
        try:
            rows = self.store.query_range(url=url, since=since, until=now)
        except StorageError:
            logger.error("Could not load samples for status view", exc_info=True)
            return {}

        by_url: dict[str, list[ServiceSample]] = defaultdict(list)
        for sample in rows:
            by_url[sample.url].append(sample)
        return by_url

    def service_view(
        self,
        target: ServiceTarget,
        snapshot: Config,
        now: int | None = None,
        incidents: Iterable[Incident] = ()
    ) -> ServiceView:
        """View of a single target."""
        now = self.clock() if now is None else now
        window_start = now - int(snapshot.data_retention_hours * 60 * MS_PER_MINUTE)
        samples = self._load_window(window_start, now, target.url).get(target.url, [])
        return build_service_view(
            target,
            samples,
            snapshot.data_retention_hours,
            snapshot.check_interval_minutes,
            now,
            incidents
        )

    def status_view(
        self,
        snapshot: Config,
        now: int | None = None,
        incidents: Sequence[Incident] = ()
    ) -> StatusView:
        """
        Build the full status view for a snapshot.

        Samples for URLs that are no longer configured are ignored.
        """
        now = self.clock() if now is None else now
        window_hours = snapshot.data_retention_hours
        window_start = now - int(window_hours * 60 * MS_PER_MINUTE)
        by_url = self._load_window(window_start, now)

        views: dict[str, ServiceView] = {
            target.url: build_service_view(
                target,
                by_url.get(target.url, []),
                window_hours,
                snapshot.check_interval_minutes,
                now,
                incidents
            )
            for target in flatten_targets(snapshot)
        }

        categories = [
            CategoryView(
                name=category.name,
                description=category.description,
                services=[views[service.url] for service in category.services],
            )
            for category in snapshot.categories
        ]

        return StatusView(
            categories=categories,
            overall_status=overall_status(views.values()),
            last_update=now,
            time_range=format_time_range(window_hours),
        )
