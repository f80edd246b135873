"""Retention cutoff computation and comparison."""

import datetime

from safir.datetime import current_datetime, isodatetime

from ..exceptions import TimestampError


def parse_timestamp(inp: str | datetime.datetime) -> datetime.datetime:
    """Parse an RFC 3339 / ISO 8601 timestamp into an aware UTC datetime.

    Registries write creation times in several ways: with ``Z`` or a numeric
    offset, and with anywhere from zero to nine digits of fractional
    seconds.  A timestamp without an offset is taken to be UTC.

    Raises
    ------
    TimestampError
        If the input cannot be understood as an instant.
    """
    if isinstance(inp, datetime.datetime):
        dt = inp
    else:
        if not isinstance(inp, str) or not inp.strip():
            raise TimestampError(inp)
        try:
            dt = datetime.datetime.fromisoformat(inp.strip())
        except ValueError as exc:
            raise TimestampError(inp) from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.UTC)
    return dt.astimezone(datetime.UTC)


def cutoff_instant(
    retention_days: int, now: datetime.datetime | None = None
) -> datetime.datetime:
    """Return the exact instant ``retention_days`` before ``now``."""
    if retention_days < 0:
        raise ValueError("retention_days must not be negative")
    if now is None:
        now = current_datetime(microseconds=True)
    return parse_timestamp(now) - datetime.timedelta(days=retention_days)


def compute_cutoff(
    retention_days: int, now: datetime.datetime | None = None
) -> str:
    """Return the instant ``retention_days`` before ``now``, in RFC 3339.

    The result is truncated to the second, so use `cutoff_instant` for
    comparisons.
    """
    return isodatetime(cutoff_instant(retention_days, now))


def is_expired(
    image_timestamp: str | datetime.datetime,
    cutoff: str | datetime.datetime,
) -> bool:
    """Whether an artifact created at ``image_timestamp`` is past retention.

    Unparseable input on either side raises `TimestampError` rather than
    deciding one way or the other.
    """
    return parse_timestamp(image_timestamp) < parse_timestamp(cutoff)


class CutoffEvaluator:
    """Holds the cutoff for one run.

    The cutoff is computed once, when the evaluator is built, so a long
    scan compares every artifact against the same instant.
    """

    def __init__(
        self, retention_days: int, now: datetime.datetime | None = None
    ) -> None:
        self.retention_days = retention_days
        self._cutoff_dt = cutoff_instant(retention_days, now)
        self.cutoff = isodatetime(self._cutoff_dt)

    def is_expired(self, image_timestamp: str | datetime.datetime) -> bool:
        return parse_timestamp(image_timestamp) < self._cutoff_dt
