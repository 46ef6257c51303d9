"""Weekly report formatting for the Telegram notification."""

import html
from dataclasses import dataclass
from datetime import date

from rankwatch.integrations.telegram import MAX_MESSAGE_LENGTH
from rankwatch.models.alert import AlertSeverity

NO_CHANGES_MESSAGE = "No significant changes this week. All steady."

_SECTIONS = (
    (AlertSeverity.CRITICAL, "CRITICAL"),
    (AlertSeverity.WARNING, "WARNING"),
    (AlertSeverity.POSITIVE, "WINS"),
)


@dataclass(frozen=True)
class AlertEvent:
    """An alert raised during a run, with the context a report needs."""

    keyword: str
    url_title: str
    severity: AlertSeverity
    details: str


def format_report_date(day: date) -> str:
    """E.g. 'Oct 19, 2026'."""
    return f"{day:%b} {day.day}, {day.year}"


def _event_line(event: AlertEvent) -> str:
    return (
        f'  "{html.escape(event.keyword)}" ({html.escape(event.url_title)}): '
        f"{html.escape(event.details)}"
    )


def _render(
    header: str,
    events: list[AlertEvent],
    shown: int,
    footer: list[str],
) -> str:
    """Render with only the first ``shown`` events (in section order) listed."""
    lines = [header, ""]
    remaining = shown
    for severity, heading in _SECTIONS:
        section = [event for event in events if event.severity is severity]
        if not section:
            continue
        lines.append(f"<b>{heading} ({len(section)})</b>")
        listed = section[: max(remaining, 0)]
        remaining -= len(listed)
        lines.extend(_event_line(event) for event in listed)
        lines.append("")

    if not events:
        lines.extend([NO_CHANGES_MESSAGE, ""])
    elif shown < len(events):
        lines.extend([f"…and {len(events) - shown} more", ""])

    lines.extend(footer)
    return "\n".join(lines)


def format_weekly_report(
    week_starting: date,
    events: list[AlertEvent],
    url_count: int,
    keyword_count: int,
    dashboard_url: str | None = None,
    max_length: int = MAX_MESSAGE_LENGTH,
) -> str:
    """Render the weekly report as Telegram HTML.

    Sections keep their full counts. When the message would exceed
    ``max_length`` characters, trailing event lines (wins first, then
    warnings, then critical) are left out whole and replaced by an
    "…and N more" line. The summary and dashboard link are always kept.
    """
    header = f"<b>Weekly SEO Report: {format_report_date(week_starting)}</b>"
    footer = [f"{url_count} articles, {keyword_count} keywords tracked"]
    if dashboard_url:
        footer.append(f'<a href="{html.escape(dashboard_url, quote=True)}">Open Dashboard</a>')

    ordered = [event for severity, _ in _SECTIONS for event in events if event.severity is severity]
    report = _render(header, ordered, len(ordered), footer)
    if len(report) <= max_length:
        return report

    # largest number of listed events that still fits
    low, high = 0, len(ordered) - 1
    while low < high:
        middle = (low + high + 1) // 2
        if len(_render(header, ordered, middle, footer)) <= max_length:
            low = middle
        else:
            high = middle - 1
    return _render(header, ordered, low, footer)
