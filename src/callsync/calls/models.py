"""
SQLAlchemy models for call records.

A CallRecord is the dashboard's view of one telephony call leg. It is created
either by the outbound action or by the first provider webhook for the call,
and is never deleted.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Uuid, or_
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.elements import ColumnElement

import callsync.auth.models  # noqa: F401  (registers users for the owner FK)
from callsync.shared.database import Base


class CallStatus(str, Enum):
    """Lifecycle status of a call record."""

    INITIATED = "initiated"
    RINGING = "ringing"
    ANSWERED = "answered"
    COMPLETED = "completed"
    DECLINED = "declined"
    FAILED = "failed"


class CallDirection(str, Enum):
    """Direction of a call relative to the dashboard user."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class DurationSource(str, Enum):
    """Where a stored duration came from."""

    PROVIDER = "provider"
    COMPUTED = "computed"


@dataclass(frozen=True)
class ExternalCallId:
    """Lookup key for a call record.

    The provider identifies a call by its call-control id; older payloads and
    records carry only a leg id. A key matches a record when either id matches.
    """

    call_control_id: str | None = None
    call_leg_id: str | None = None

    def __post_init__(self) -> None:
        if not self.call_control_id and not self.call_leg_id:
            raise ValueError("ExternalCallId needs a call_control_id or a call_leg_id")

    def clause(self) -> ColumnElement[bool]:
        """SQL predicate matching a record on either external id."""
        conditions = []
        if self.call_control_id:
            conditions.append(CallRecord.call_control_id == self.call_control_id)
        if self.call_leg_id:
            conditions.append(CallRecord.call_leg_id == self.call_leg_id)
        return or_(*conditions)

    def __str__(self) -> str:
        return self.call_control_id or self.call_leg_id or ""


class CallRecord(Base):
    """Call record model."""

    __tablename__ = "call_records"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    call_control_id: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        index=True,
    )
    call_leg_id: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        index=True,
    )
    from_number: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    to_number: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    direction: Mapped[CallDirection] = mapped_column(
        SQLEnum(
            CallDirection,
            name="call_direction",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    status: Mapped[CallStatus] = mapped_column(
        SQLEnum(
            CallStatus,
            name="call_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=CallStatus.INITIATED,
    )
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_source: Mapped[DurationSource | None] = mapped_column(
        SQLEnum(
            DurationSource,
            name="call_duration_source",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=True,
    )
    owner_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    last_provider_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )

    @property
    def external_id(self) -> ExternalCallId:
        return ExternalCallId(
            call_control_id=self.call_control_id,
            call_leg_id=self.call_leg_id,
        )

    def __repr__(self) -> str:
        return (
            f"<CallRecord(id={self.id}, call_control_id={self.call_control_id}, "
            f"status={self.status})>"
        )
