"""
Time bucketer.

Partitions a date range into ordered, contiguous, half-open buckets
``[start, end)`` for a granularity and assigns timestamps to buckets.

Bucket boundaries are calendar-anchored (weeks start on Monday, months on the
1st, quarters on Jan/Apr/Jul/Oct 1st, years on Jan 1st), so two ranges with
the same granularity share boundaries. The first bucket is clipped to the
range start; the last bucket extends to the boundary following the range end,
so the buckets cover ``[start, last_bucket.end)`` exactly, without gaps or
overlaps. Timestamps outside that coverage are not assigned (no clamping).
"""

from bisect import bisect_right
from datetime import date, datetime, timedelta
from typing import Optional, Union

from reportengine.errors import InvalidRangeError
from reportengine.models.base import EngineModel
from reportengine.models.enums import Granularity

DEFAULT_MAX_BUCKETS = 500


class Bucket(EngineModel):
    """
    One half-open time bucket.

    Attributes:
        start: Inclusive start
        end: Exclusive end
        label: Display label (e.g. "2024-02-01", "2024-02", "2024-Q1", "2024")
    """

    start: datetime
    end: datetime
    label: str


def period_start(day: date, granularity: Granularity) -> date:
    """Return the calendar-anchored start of the period containing ``day``."""
    if granularity is Granularity.DAY:
        return day
    if granularity is Granularity.WEEK:
        return day - timedelta(days=day.weekday())
    if granularity is Granularity.MONTH:
        return day.replace(day=1)
    if granularity is Granularity.QUARTER:
        return date(day.year, 3 * ((day.month - 1) // 3) + 1, 1)
    return date(day.year, 1, 1)


def next_period_start(day: date, granularity: Granularity) -> date:
    """Return the start of the period following the one containing ``day``."""
    start = period_start(day, granularity)
    if granularity is Granularity.DAY:
        return start + timedelta(days=1)
    if granularity is Granularity.WEEK:
        return start + timedelta(days=7)
    if granularity is Granularity.MONTH:
        return _add_months(start, 1)
    if granularity is Granularity.QUARTER:
        return _add_months(start, 3)
    return date(start.year + 1, 1, 1)


def _add_months(first_of_month: date, months: int) -> date:
    index = first_of_month.month - 1 + months
    return date(first_of_month.year + index // 12, index % 12 + 1, 1)


def period_label(day: date, granularity: Granularity) -> str:
    """
    Label of the period containing ``day``.

    Day and week labels are ISO dates (the Monday for weeks), months are
    ``YYYY-MM``, quarters ``YYYY-Qn`` and years ``YYYY``.
    """
    start = period_start(day, granularity)
    if granularity in (Granularity.DAY, Granularity.WEEK):
        return start.isoformat()
    if granularity is Granularity.MONTH:
        return f"{start.year:04d}-{start.month:02d}"
    if granularity is Granularity.QUARTER:
        return f"{start.year:04d}-Q{(start.month - 1) // 3 + 1}"
    return f"{start.year:04d}"


def _midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day)


def bucketize(
    start: date,
    end: date,
    granularity: Granularity,
    max_buckets: int = DEFAULT_MAX_BUCKETS,
) -> list[Bucket]:
    """
    Split ``[start, end]`` into ordered buckets.

    Args:
        start: First day of the range (inclusive)
        end: Last day of the range (inclusive)
        granularity: Bucket size
        max_buckets: Upper bound on the number of buckets

    Returns:
        Ordered, contiguous buckets; ``start == end`` yields one bucket

    Raises:
        InvalidRangeError: If start is after end or the range needs more
            than ``max_buckets`` buckets

    Example:
        >>> [b.label for b in bucketize(date(2024, 1, 15), date(2024, 3, 2), Granularity.MONTH)]
        ['2024-01', '2024-02', '2024-03']
    """
    if start > end:
        raise InvalidRangeError(
            f"Range start {start.isoformat()} is after end {end.isoformat()}"
        )

    buckets: list[Bucket] = []
    cursor = start
    while cursor <= end:
        boundary = next_period_start(cursor, granularity)
        buckets.append(
            Bucket(
                start=_midnight(cursor),
                end=_midnight(boundary),
                label=period_label(cursor, granularity),
            )
        )
        if len(buckets) > max_buckets:
            raise InvalidRangeError(
                f"Range {start.isoformat()}..{end.isoformat()} at {granularity.value} "
                f"granularity exceeds {max_buckets} buckets"
            )
        cursor = boundary
    return buckets


class TimeBucketer:
    """
    Buckets of one range plus timestamp assignment.

    Args:
        start: First day of the range (inclusive)
        end: Last day of the range (inclusive)
        granularity: Bucket size
        max_buckets: Upper bound on the number of buckets

    Example:
        >>> bucketer = TimeBucketer(date(2024, 1, 1), date(2024, 2, 28), Granularity.MONTH)
        >>> bucketer.assign(datetime(2024, 2, 10))
        1
        >>> bucketer.assign(datetime(2023, 12, 31)) is None
        True
    """

    def __init__(
        self,
        start: date,
        end: date,
        granularity: Granularity,
        max_buckets: int = DEFAULT_MAX_BUCKETS,
    ):
        self.granularity = granularity
        self.buckets = tuple(bucketize(start, end, granularity, max_buckets))
        self._starts = [bucket.start for bucket in self.buckets]

    @property
    def window_start(self) -> datetime:
        return self.buckets[0].start

    @property
    def window_end(self) -> datetime:
        """Exclusive end of the covered interval."""
        return self.buckets[-1].end

    @property
    def labels(self) -> list[str]:
        return [bucket.label for bucket in self.buckets]

    def __len__(self) -> int:
        return len(self.buckets)

    def in_window(self, timestamp: Union[datetime, date]) -> bool:
        return self.assign(timestamp) is not None

    def assign(self, timestamp: Union[datetime, date, None]) -> Optional[int]:
        """
        Return the index of the bucket containing ``timestamp``.

        Returns:
            Bucket index, or None for null timestamps and timestamps outside
            ``[window_start, window_end)``
        """
        if timestamp is None:
            return None
        if not isinstance(timestamp, datetime):
            timestamp = _midnight(timestamp)
        if timestamp < self.window_start or timestamp >= self.window_end:
            return None
        return bisect_right(self._starts, timestamp) - 1


def suggest_granularity(start: date, end: date) -> Granularity:
    """
    Suggest a granularity that keeps the bucket count readable.

    Ranges up to 31 days suggest day, up to 90 days week, up to 730 days
    month, up to 1825 days quarter, and year beyond that.
    """
    days = (end - start).days
    if days <= 31:
        return Granularity.DAY
    if days <= 90:
        return Granularity.WEEK
    if days <= 730:
        return Granularity.MONTH
    if days <= 1825:
        return Granularity.QUARTER
    return Granularity.YEAR
