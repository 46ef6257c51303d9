"""Unit tests for the position change classifier.

Tests cover:
- Each alert kind and its severity
- First-match-wins rule ordering
- Threshold boundaries
- Unknown positions
"""

import pytest

from rankwatch.models.alert import AlertSeverity, AlertType
from rankwatch.services.alert_classifier import classify_position_change


class TestClassifyPositionChange:
    """Tests for classify_position_change."""

    def test_leaving_page_one_is_critical(self) -> None:
        decision = classify_position_change(5, 12, threshold=3)

        assert decision is not None
        assert decision.type == AlertType.LEFT_PAGE1
        assert decision.severity == AlertSeverity.CRITICAL
        assert decision.details == "#5 → #12. Lost page 1."

    def test_leaving_page_one_wins_over_drop(self) -> None:
        """8 → 15 also clears the drop threshold but is reported once, as left_page1."""
        decision = classify_position_change(8, 15, threshold=3)

        assert decision is not None
        assert decision.type == AlertType.LEFT_PAGE1

    def test_leaving_from_position_ten(self) -> None:
        decision = classify_position_change(10, 11, threshold=3)

        assert decision is not None
        assert decision.type == AlertType.LEFT_PAGE1

    def test_drop_at_threshold_is_warning(self) -> None:
        decision = classify_position_change(12, 15, threshold=3)

        assert decision is not None
        assert decision.type == AlertType.POSITION_DROP
        assert decision.severity == AlertSeverity.WARNING
        assert decision.details == "#12 → #15 (-3)"

    def test_drop_of_twice_threshold_is_critical(self) -> None:
        decision = classify_position_change(20, 26, threshold=3)

        assert decision is not None
        assert decision.type == AlertType.POSITION_DROP
        assert decision.severity == AlertSeverity.CRITICAL

    def test_drop_within_page_one(self) -> None:
        decision = classify_position_change(2, 7, threshold=3)

        assert decision is not None
        assert decision.type == AlertType.POSITION_DROP
        assert decision.severity == AlertSeverity.WARNING

    def test_drop_below_threshold_is_ignored(self) -> None:
        assert classify_position_change(12, 14, threshold=3) is None

    def test_recovery(self) -> None:
        decision = classify_position_change(20, 14, threshold=3)

        assert decision is not None
        assert decision.type == AlertType.RECOVERY
        assert decision.severity == AlertSeverity.POSITIVE
        assert decision.details == "#20 → #14 (+6)"

    def test_recovery_wins_over_top_three(self) -> None:
        """5 → 2 is a gain of 3, so the recovery rule matches first."""
        decision = classify_position_change(5, 2, threshold=3)

        assert decision is not None
        assert decision.type == AlertType.RECOVERY

    def test_entering_top_three_below_threshold(self) -> None:
        decision = classify_position_change(4, 3, threshold=3)

        assert decision is not None
        assert decision.type == AlertType.NEW_TOP3
        assert decision.severity == AlertSeverity.POSITIVE
        assert decision.details == "#4 → #3. Entered top 3!"

    def test_no_change(self) -> None:
        assert classify_position_change(7, 7, threshold=3) is None

    def test_moving_within_top_three(self) -> None:
        assert classify_position_change(3, 1, threshold=3) is None

    @pytest.mark.parametrize(
        ("prev", "current"),
        [(None, 5), (5, None), (None, None)],
    )
    def test_unknown_position_never_alerts(self, prev: int | None, current: int | None) -> None:
        assert classify_position_change(prev, current, threshold=3) is None

    def test_threshold_of_one(self) -> None:
        decision = classify_position_change(15, 16, threshold=1)

        assert decision is not None
        assert decision.type == AlertType.POSITION_DROP
        assert decision.severity == AlertSeverity.WARNING
