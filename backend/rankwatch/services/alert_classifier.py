"""Classifies a keyword's position change into at most one alert.

Rules are evaluated in the order of ``ALERT_RULES`` and the first matching
rule wins. A drop from #8 to #15 is therefore reported as ``left_page1``
even though it also clears the drop threshold.
"""

from collections.abc import Callable
from dataclasses import dataclass

from rankwatch.models.alert import AlertSeverity, AlertType

PAGE_ONE_LAST_POSITION = 10
TOP_THREE_LAST_POSITION = 3


@dataclass(frozen=True)
class AlertDecision:
    """The alert a position change deserves."""

    type: AlertType
    severity: AlertSeverity
    details: str


Predicate = Callable[[int, int, int], bool]
Classify = Callable[[int, int, int], AlertDecision]


def _left_page_one(prev: int, current: int, threshold: int) -> bool:
    return prev <= PAGE_ONE_LAST_POSITION < current


def _dropped(prev: int, current: int, threshold: int) -> bool:
    return current - prev >= threshold


def _recovered(prev: int, current: int, threshold: int) -> bool:
    return current - prev <= -threshold


def _entered_top_three(prev: int, current: int, threshold: int) -> bool:
    return prev > TOP_THREE_LAST_POSITION >= current


def _classify_left_page_one(prev: int, current: int, threshold: int) -> AlertDecision:
    return AlertDecision(
        type=AlertType.LEFT_PAGE1,
        severity=AlertSeverity.CRITICAL,
        details=f"#{prev} → #{current}. Lost page 1.",
    )


def _classify_drop(prev: int, current: int, threshold: int) -> AlertDecision:
    drop = current - prev
    severity = AlertSeverity.CRITICAL if drop >= 2 * threshold else AlertSeverity.WARNING
    return AlertDecision(
        type=AlertType.POSITION_DROP,
        severity=severity,
        details=f"#{prev} → #{current} (-{drop})",
    )


def _classify_recovery(prev: int, current: int, threshold: int) -> AlertDecision:
    return AlertDecision(
        type=AlertType.RECOVERY,
        severity=AlertSeverity.POSITIVE,
        details=f"#{prev} → #{current} (+{prev - current})",
    )


def _classify_top_three(prev: int, current: int, threshold: int) -> AlertDecision:
    return AlertDecision(
        type=AlertType.NEW_TOP3,
        severity=AlertSeverity.POSITIVE,
        details=f"#{prev} → #{current}. Entered top 3!",
    )


# Order matters: first match wins.
ALERT_RULES: tuple[tuple[Predicate, Classify], ...] = (
    (_left_page_one, _classify_left_page_one),
    (_dropped, _classify_drop),
    (_recovered, _classify_recovery),
    (_entered_top_three, _classify_top_three),
)


def classify_position_change(
    prev_position: int | None, current_position: int | None, threshold: int
) -> AlertDecision | None:
    """Return the alert for a position change, or None.

    No alert is possible unless both positions are known.
    """
    if prev_position is None or current_position is None:
        return None

    for matches, classify in ALERT_RULES:
        if matches(prev_position, current_position, threshold):
            return classify(prev_position, current_position, threshold)
    return None
