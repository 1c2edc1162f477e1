"""
SQLAlchemy models for phone numbers owned by dashboard users.
"""

import re
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

import callsync.auth.models  # noqa: F401
from callsync.shared.database import Base

_NON_DIGITS = re.compile(r"\D+")


def normalize_number(value: str) -> str:
    """Normalize a phone number to ``+<digits>``.

    ``"+1 (555) 123-0000"`` and ``"15551230000"`` both become ``"+15551230000"``.
    Values without digits are returned stripped.
    """
    raw = (value or "").strip()
    digits = _NON_DIGITS.sub("", raw)
    if not digits:
        return raw
    return f"+{digits}"


class PhoneNumber(Base):
    """A provider phone number purchased by a user."""

    __tablename__ = "phone_numbers"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    owner_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phone_number: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        nullable=False,
        index=True,
    )
    provider_number_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    # Set once the number is attached to a voice connection at the provider
    connection_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<PhoneNumber(id={self.id}, phone_number={self.phone_number})>"
