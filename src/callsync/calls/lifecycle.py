"""
Call lifecycle rules shared by the webhook reconciler and the control actions.

Status moves forward only: initiated -> ringing -> answered -> one of the
terminal statuses. Once terminal, a record's status never changes again.

Duration has a single policy:
1. A provider-supplied duration is authoritative and always stored.
2. Otherwise, if no duration is stored yet and the call was not declined,
   a duration is computed as ``floor(now - created_at)`` clamped at zero.
A computed value never replaces a stored one.
"""

import math
from datetime import datetime, timezone

from callsync.calls.models import CallRecord, CallStatus, DurationSource

TERMINAL_STATUSES: frozenset[CallStatus] = frozenset(
    {CallStatus.COMPLETED, CallStatus.DECLINED, CallStatus.FAILED}
)

_STATUS_RANK: dict[CallStatus, int] = {
    CallStatus.INITIATED: 0,
    CallStatus.RINGING: 1,
    CallStatus.ANSWERED: 2,
    CallStatus.COMPLETED: 3,
    CallStatus.DECLINED: 3,
    CallStatus.FAILED: 3,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_terminal(status: CallStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: CallStatus, target: CallStatus) -> bool:
    """Return True if a record in ``current`` may move to ``target``.

    Re-applying the current non-terminal status is allowed (idempotent).
    """
    if is_terminal(current):
        return False
    return _STATUS_RANK[target] >= _STATUS_RANK[current]


def elapsed_seconds(created_at: datetime, now: datetime) -> int:
    """Whole seconds between ``created_at`` and ``now``, never negative.

    Naive datetimes (SQLite drops tzinfo) are treated as UTC.
    """
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0, math.floor((now - created_at).total_seconds()))


def apply_duration(
    record: CallRecord,
    *,
    provider_seconds: int | None,
    now: datetime,
) -> bool:
    """Apply the duration policy to ``record``.

    Args:
        record: Call record, with its final status for this event already set.
        provider_seconds: Duration reported by the provider, if any.
        now: Current time used for the computed estimate.

    Returns:
        True if ``record.duration_seconds`` changed.
    """
    if provider_seconds is not None:
        value = max(0, int(provider_seconds))
        changed = (
            record.duration_seconds != value
            or record.duration_source != DurationSource.PROVIDER
        )
        record.duration_seconds = value
        record.duration_source = DurationSource.PROVIDER
        return changed

    if record.duration_seconds is not None:
        return False
    if record.status == CallStatus.DECLINED:
        return False

    record.duration_seconds = elapsed_seconds(record.created_at, now)
    record.duration_source = DurationSource.COMPUTED
    return True
