"""Contact submission and note models."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, UUIDMixin, TimestampMixin

TagList = JSON().with_variant(JSONB(), "postgresql")


class Submission(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "contact_submissions"

    # Contact
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    company: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    interest_area: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    goals: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Pipeline
    status: Mapped[str] = mapped_column(String(20), default="new")  # new|lead|client|closed
    tags: Mapped[list[str]] = mapped_column(TagList, default=list, nullable=False)
    resurface_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    # Bumped on every mutation, checked by tag/status compare-and-swap
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Intake metadata (rate limiting)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)


class SubmissionNote(Base, UUIDMixin):
    __tablename__ = "submission_notes"

    # No ondelete cascade: notes outlive their submission for audit
    submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("contact_submissions.id"), nullable=False, index=True
    )

    note_text: Mapped[str] = mapped_column(Text, nullable=False)
    note_type: Mapped[str] = mapped_column(String(20), default="general")  # call|email|meeting|general
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
