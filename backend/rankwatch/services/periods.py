"""Week arithmetic for collection runs.

A period is a calendar week identified by its Monday. Search Console lags
by about three days, so each period reads a seven day window that ends
three days before the reference day.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum

ANALYTICS_LAG_DAYS = 3
ANALYTICS_WINDOW_DAYS = 7
HISTORICAL_SERP_OFFSET_DAYS = 3  # mid-week (Thursday)


class SerpMode(str, Enum):
    """Which SERP lookup a period uses."""

    LIVE = "live"
    HISTORICAL = "historical"
    NONE = "none"


@dataclass(frozen=True)
class Period:
    """One week to collect, with its source date ranges."""

    week_starting: date
    analytics_start: date
    analytics_end: date
    serp_mode: SerpMode
    serp_date: date | None = None


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def current_period(now: datetime) -> Period:
    """The period a live run writes to."""
    today = now.date()
    analytics_end = today - timedelta(days=ANALYTICS_LAG_DAYS)
    return Period(
        week_starting=week_start(today),
        analytics_start=analytics_end - timedelta(days=ANALYTICS_WINDOW_DAYS),
        analytics_end=analytics_end,
        serp_mode=SerpMode.LIVE,
    )


def backfill_periods(
    now: datetime, weeks_back: int, use_historical_serp: bool
) -> list[Period]:
    """Periods for a backfill, newest first.

    Offset 0 is the current week and uses the live SERP check. Older weeks
    use the historical SERP lookup anchored mid-week when requested,
    otherwise they skip SERP entirely.
    """
    current_week = week_start(now.date())
    periods: list[Period] = []
    for offset in range(weeks_back):
        week = current_week - timedelta(weeks=offset)
        analytics_end = week + timedelta(days=6 - ANALYTICS_LAG_DAYS)
        if offset == 0:
            serp_mode, serp_date = SerpMode.LIVE, None
        elif use_historical_serp:
            serp_mode = SerpMode.HISTORICAL
            serp_date = week + timedelta(days=HISTORICAL_SERP_OFFSET_DAYS)
        else:
            serp_mode, serp_date = SerpMode.NONE, None
        periods.append(
            Period(
                week_starting=week,
                analytics_start=analytics_end - timedelta(days=ANALYTICS_WINDOW_DAYS),
                analytics_end=analytics_end,
                serp_mode=serp_mode,
                serp_date=serp_date,
            )
        )
    return periods


def retention_cutoff(now: datetime, archive_weeks: int) -> date:
    """First week date that survives the sweep.

    A snapshot expires when the midnight (UTC) that starts its week lies
    before ``now - archive_weeks``. Deleting ``week_starting < cutoff``
    with the returned date removes exactly those rows.
    """
    horizon = now.astimezone(UTC) - timedelta(weeks=archive_weeks)
    cutoff = horizon.date()
    if datetime.combine(cutoff, time.min, tzinfo=UTC) < horizon:
        cutoff += timedelta(days=1)
    return cutoff
