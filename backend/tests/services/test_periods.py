from datetime import datetime, timedelta, timezone

import pytest

from app.domain.payment_timing import (
    calculate_payment_timing,
    display_deadline,
    is_backend_expired,
    is_display_expired,
)
from app.domain.periods import expand_target_periods, is_period_match, unknown_period_codes

NOW = datetime(2025, 7, 15, 9, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("tuition_period", "targets", "expected"),
    [
        ("JULY", ["JULY"], True),
        ("AUGUST", ["Q1"], True),
        ("OCTOBER", ["Q1"], False),
        ("MARCH", ["SEM2"], True),
        ("Q2", ["NOVEMBER"], True),
        ("Q3", ["SEM1"], False),
        ("SEM1", ["Q2"], True),
        ("JUNE", ["JANUARY", "FEBRUARY"], False),
    ],
)
def test_is_period_match_handles_months_quarters_and_semesters(tuition_period, targets, expected):
    """
    Validate period matching between tuition periods and discount targets.

    1. Take one tuition period and one list of target codes.
    2. Evaluate whether the targets cover the tuition period.
    3. Compare the match with the expected outcome.
    4. Validate group codes match their member months in both directions.
    """
    assert is_period_match(tuition_period, targets) is expected


def test_expand_and_validate_period_codes():
    """
    Validate period expansion and unknown code detection.

    1. Expand one quarter code into its months.
    2. Check the group code itself is kept.
    3. Detect unknown codes in a mixed list.
    4. Validate only the unknown codes are reported, sorted.
    """
    expanded = expand_target_periods(["Q4"])
    assert expanded == {"Q4", "APRIL", "MAY", "JUNE"}
    assert unknown_period_codes(["JULY", "QUARTER9", "SEM1", "ABC"]) == ["ABC", "QUARTER9"]


def test_payment_timing_keeps_display_window_inside_backend_window():
    """
    Validate the dual timer for one payment request.

    1. Calculate timing with a 10 minute backend and 5 minute display window.
    2. Derive the display deadline back from the backend deadline.
    3. Evaluate both expiry checks at plus seven minutes.
    4. Validate the display window closed while the backend window is still open.
    """
    timing = calculate_payment_timing(NOW, backend_minutes=10, display_minutes=5)
    assert timing.backend_expires_at == NOW + timedelta(minutes=10)
    assert timing.display_expires_at == NOW + timedelta(minutes=5)
    assert display_deadline(timing.backend_expires_at, backend_minutes=10, display_minutes=5) == timing.display_expires_at

    later = NOW + timedelta(minutes=7)
    assert is_display_expired(timing.backend_expires_at, later, backend_minutes=10, display_minutes=5) is True
    assert is_backend_expired(timing.backend_expires_at, later) is False
    assert is_backend_expired(timing.backend_expires_at, NOW + timedelta(minutes=10)) is True


def test_payment_timing_rejects_display_longer_than_backend():
    """
    Validate timer configuration guard.

    1. Request a display window longer than the backend window.
    2. Call the timing calculation once.
    3. Capture the raised error.
    4. Validate the configuration is rejected.
    """
    with pytest.raises(ValueError):
        calculate_payment_timing(NOW, backend_minutes=5, display_minutes=10)
