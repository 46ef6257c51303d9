"""Unit tests for weekly report formatting."""

from datetime import date

from rankwatch.models.alert import AlertSeverity
from rankwatch.services.report import (
    NO_CHANGES_MESSAGE,
    AlertEvent,
    format_report_date,
    format_weekly_report,
)

WEEK = date(2026, 10, 19)


def test_format_report_date() -> None:
    assert format_report_date(WEEK) == "Oct 19, 2026"
    assert format_report_date(date(2026, 3, 2)) == "Mar 2, 2026"


def test_sections_in_severity_order() -> None:
    events = [
        AlertEvent("best dog food", "Dog Food Guide", AlertSeverity.POSITIVE, "#20 → #14 (+6)"),
        AlertEvent("cat toys", "Cat Toys", AlertSeverity.CRITICAL, "#5 → #12. Lost page 1."),
        AlertEvent("cat beds", "Cat Toys", AlertSeverity.CRITICAL, "#9 → #30. Lost page 1."),
    ]

    report = format_weekly_report(WEEK, events, url_count=2, keyword_count=7)

    assert report.startswith("<b>Weekly SEO Report: Oct 19, 2026</b>")
    assert "<b>CRITICAL (2)</b>" in report
    assert "<b>WINS (1)</b>" in report
    assert "WARNING" not in report
    assert report.index("CRITICAL") < report.index("WINS")
    assert '  "cat toys" (Cat Toys): #5 → #12. Lost page 1.' in report
    assert "2 articles, 7 keywords tracked" in report


def test_no_events() -> None:
    report = format_weekly_report(WEEK, [], url_count=1, keyword_count=3)

    assert NO_CHANGES_MESSAGE in report
    assert "1 articles, 3 keywords tracked" in report


def test_user_text_is_escaped() -> None:
    events = [AlertEvent("<b>x</b>", "Tom & Jerry", AlertSeverity.WARNING, "#1 → #5 (-4)")]

    report = format_weekly_report(WEEK, events, url_count=1, keyword_count=1)

    assert "&lt;b&gt;x&lt;/b&gt;" in report
    assert "Tom &amp; Jerry" in report


def test_dashboard_link() -> None:
    with_link = format_weekly_report(
        WEEK, [], url_count=0, keyword_count=0, dashboard_url="https://dash.example.com"
    )
    without_link = format_weekly_report(WEEK, [], url_count=0, keyword_count=0)

    assert '<a href="https://dash.example.com">Open Dashboard</a>' in with_link
    assert "Open Dashboard" not in without_link


def _critical_events(count: int) -> list[AlertEvent]:
    return [
        AlertEvent(
            f"keyword number {i}",
            f"A Fairly Long Article Title {i}",
            AlertSeverity.CRITICAL,
            "#5 → #12. Lost page 1.",
        )
        for i in range(count)
    ]


def test_long_report_drops_whole_lines_and_keeps_footer() -> None:
    events = _critical_events(60) + [
        AlertEvent("win", "Winner", AlertSeverity.POSITIVE, "#20 → #14 (+6)")
    ]

    report = format_weekly_report(
        WEEK, events, url_count=9, keyword_count=120, dashboard_url="https://dash.example.com"
    )

    assert len(report) <= 4096
    assert "<b>CRITICAL (60)</b>" in report
    assert "<b>WINS (1)</b>" in report
    assert report.count("<b>") == report.count("</b>")
    assert report.count("<a ") == report.count("</a>") == 1
    assert report.endswith(
        '9 articles, 120 keywords tracked\n<a href="https://dash.example.com">Open Dashboard</a>'
    )

    listed = [line for line in report.splitlines() if line.startswith('  "')]
    omitted = int(report.split("…and ")[1].split(" more")[0])
    assert len(listed) + omitted == 61
    assert '  "keyword number 0"' in report
    assert '"win" (Winner)' not in report
    # every listed event line is complete
    assert all(line.endswith("Lost page 1.") for line in listed)


def test_report_within_limit_is_not_trimmed() -> None:
    report = format_weekly_report(WEEK, _critical_events(3), url_count=1, keyword_count=3)

    assert "more" not in report
    assert report.count('  "keyword number') == 3


def test_tiny_limit_lists_no_events() -> None:
    report = format_weekly_report(
        WEEK, _critical_events(5), url_count=1, keyword_count=5, max_length=150
    )

    assert "<b>CRITICAL (5)</b>" in report
    assert "…and 5 more" in report
    assert report.endswith("1 articles, 5 keywords tracked")
