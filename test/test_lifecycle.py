"""Tests for call lifecycle rules (no DB)."""

from datetime import datetime, timedelta, timezone

import pytest

from callsync.calls.lifecycle import (
    TERMINAL_STATUSES,
    apply_duration,
    can_transition,
    elapsed_seconds,
    is_terminal,
)
from callsync.calls.models import CallDirection, CallRecord, CallStatus, DurationSource

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _record(status: CallStatus = CallStatus.ANSWERED, **kwargs) -> CallRecord:
    return CallRecord(
        call_control_id="ccid-1",
        from_number="+15550001111",
        to_number="+15551230000",
        direction=CallDirection.INBOUND,
        status=status,
        created_at=T0,
        **kwargs,
    )


class TestTransitions:
    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_status_never_changes(self, status: CallStatus) -> None:
        assert is_terminal(status)
        for target in CallStatus:
            assert can_transition(status, target) is False

    def test_forward_moves_are_allowed(self) -> None:
        assert can_transition(CallStatus.INITIATED, CallStatus.RINGING)
        assert can_transition(CallStatus.RINGING, CallStatus.ANSWERED)
        assert can_transition(CallStatus.ANSWERED, CallStatus.COMPLETED)
        assert can_transition(CallStatus.INITIATED, CallStatus.DECLINED)

    def test_backward_moves_are_refused(self) -> None:
        assert can_transition(CallStatus.ANSWERED, CallStatus.RINGING) is False
        assert can_transition(CallStatus.RINGING, CallStatus.INITIATED) is False

    def test_same_status_is_idempotent(self) -> None:
        assert can_transition(CallStatus.RINGING, CallStatus.RINGING)


class TestElapsedSeconds:
    def test_floors_fractional_seconds(self) -> None:
        assert elapsed_seconds(T0, T0 + timedelta(seconds=42, milliseconds=900)) == 42

    def test_clock_skew_clamps_to_zero(self) -> None:
        assert elapsed_seconds(T0, T0 - timedelta(seconds=5)) == 0

    def test_naive_created_at_is_treated_as_utc(self) -> None:
        naive = T0.replace(tzinfo=None)
        assert elapsed_seconds(naive, T0 + timedelta(seconds=10)) == 10


class TestApplyDuration:
    def test_provider_value_is_stored_exactly(self) -> None:
        record = _record(status=CallStatus.COMPLETED)

        changed = apply_duration(record, provider_seconds=37, now=T0 + timedelta(seconds=90))

        assert changed is True
        assert record.duration_seconds == 37
        assert record.duration_source == DurationSource.PROVIDER

    def test_computed_when_provider_value_absent(self) -> None:
        record = _record(status=CallStatus.COMPLETED)

        apply_duration(record, provider_seconds=None, now=T0 + timedelta(seconds=61.5))

        assert record.duration_seconds == 61
        assert record.duration_source == DurationSource.COMPUTED

    def test_computed_never_overwrites_provider_value(self) -> None:
        record = _record(
            status=CallStatus.COMPLETED,
            duration_seconds=37,
            duration_source=DurationSource.PROVIDER,
        )

        changed = apply_duration(record, provider_seconds=None, now=T0 + timedelta(seconds=500))

        assert changed is False
        assert record.duration_seconds == 37

    def test_computed_never_overwrites_computed_value(self) -> None:
        record = _record(
            status=CallStatus.COMPLETED,
            duration_seconds=12,
            duration_source=DurationSource.COMPUTED,
        )

        apply_duration(record, provider_seconds=None, now=T0 + timedelta(seconds=500))

        assert record.duration_seconds == 12

    def test_provider_value_replaces_computed_estimate(self) -> None:
        record = _record(
            status=CallStatus.COMPLETED,
            duration_seconds=12,
            duration_source=DurationSource.COMPUTED,
        )

        apply_duration(record, provider_seconds=10, now=T0 + timedelta(seconds=500))

        assert record.duration_seconds == 10
        assert record.duration_source == DurationSource.PROVIDER

    def test_declined_call_gets_no_computed_duration(self) -> None:
        record = _record(status=CallStatus.DECLINED)

        changed = apply_duration(record, provider_seconds=None, now=T0 + timedelta(seconds=30))

        assert changed is False
        assert record.duration_seconds is None
