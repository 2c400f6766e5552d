"""Submission lifecycle: pipeline invariants on top of the submission store."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from src.config import settings
from src.errors import LifecycleError, StoreUnavailable, ValidationError
from src.lifecycle import rules
from src.repositories.submission import UNSET, SubmissionStore
from src.schemas.submission import (
    NoteRecord,
    NoteType,
    SubmissionRecord,
    SuggestionContext,
)

logger = structlog.get_logger()

T = TypeVar("T")

NOTE_TYPES = tuple(t.value for t in NoteType)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionLifecycle:
    """Applies status, tag, resurface and note rules through a store.

    Store errors are never swallowed: they are logged and re-raised with the
    submission id and the attempted operation attached.
    """

    def __init__(
        self,
        store: SubmissionStore,
        *,
        auto_resurface_on_close: Optional[bool] = None,
        resurface_after_months: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.auto_resurface_on_close = (
            settings.auto_resurface_on_close
            if auto_resurface_on_close is None
            else auto_resurface_on_close
        )
        self.resurface_after_months = resurface_after_months or settings.resurface_after_months
        self.timeout_seconds = timeout_seconds or settings.store_timeout_seconds
        self.clock = clock

    async def _call(
        self,
        operation: str,
        submission_id: Optional[str],
        call: Callable[[], Awaitable[T]],
    ) -> T:
        """Run one store call with a bounded timeout."""
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "submission_store_timeout",
                operation=operation,
                submission_id=submission_id,
                timeout=self.timeout_seconds,
            )
            raise StoreUnavailable(
                "Storage did not respond in time, please retry",
                submission_id=submission_id,
                operation=operation,
            ) from None
        except LifecycleError as e:
            e.with_context(submission_id=submission_id, operation=operation)
            logger.warning(
                "submission_operation_failed",
                operation=operation,
                submission_id=submission_id,
                error_code=e.error_code,
                error=e.message,
            )
            raise

    # --- Reads --------------------------------------------------------

    async def get(self, submission_id: str) -> SubmissionRecord:
        return await self._call("get", submission_id, lambda: self.store.get(submission_id))

    async def list_active(self) -> list[SubmissionRecord]:
        return await self._call("list_active", None, self.store.list_active)

    async def list_bucket(self, bucket: str) -> tuple[list[SubmissionRecord], dict[str, int]]:
        """Submissions in one dashboard bucket plus counts for every bucket."""
        submissions = await self.list_active()
        now = self.clock()
        return rules.filter_bucket(submissions, bucket, now), rules.bucket_counts(submissions, now)

    def is_due_for_revisit(self, submission: SubmissionRecord) -> bool:
        return rules.is_due_for_revisit(submission, self.clock())

    # --- Status -------------------------------------------------------

    async def change_status(self, submission_id: str, new_status: str) -> SubmissionRecord:
        """Move a submission to any pipeline stage.

        With ``auto_resurface_on_close`` enabled, closing also schedules a
        resurface date ``resurface_after_months`` from now. Otherwise the
        resurface date is left untouched.
        """
        try:
            rules.validate_status(new_status)
        except ValidationError as e:
            raise e.with_context(submission_id=submission_id)

        resurface_date: Any = UNSET
        scheduled = rules.resurface_date_for_transition(
            new_status,
            self.clock(),
            auto_resurface_on_close=self.auto_resurface_on_close,
            months=self.resurface_after_months,
        )
        if scheduled is not None:
            resurface_date = scheduled

        updated = await self._call(
            "update_status",
            submission_id,
            lambda: self.store.update_status(submission_id, new_status, resurface_date),
        )
        logger.info(
            "submission_status_changed",
            submission_id=submission_id,
            status=new_status,
            resurface_date=updated.resurface_date.isoformat() if updated.resurface_date else None,
        )
        return updated

    # --- Tags ---------------------------------------------------------

    async def _apply_tags(
        self, submission_id: str, transform: rules.TagTransform, action: str
    ) -> SubmissionRecord:
        updated = await self._call(
            "update_tags",
            submission_id,
            lambda: self.store.apply_tags(submission_id, transform),
        )
        logger.info(
            "submission_tags_updated",
            submission_id=submission_id,
            action=action,
            tags=updated.tags,
        )
        return updated

    async def add_tag(self, submission_id: str, tag: str) -> SubmissionRecord:
        """Add a tag. Adding a tag that is already present changes nothing."""
        try:
            transform = rules.adding(tag)
        except ValidationError as e:
            raise e.with_context(submission_id=submission_id)
        return await self._apply_tags(submission_id, transform, "add")

    async def remove_tag(self, submission_id: str, tag: str) -> SubmissionRecord:
        """Remove a tag. Removing an absent tag changes nothing."""
        try:
            transform = rules.removing(tag)
        except ValidationError as e:
            raise e.with_context(submission_id=submission_id)
        return await self._apply_tags(submission_id, transform, "remove")

    async def clear_tags(self, submission_id: str) -> SubmissionRecord:
        return await self._apply_tags(submission_id, rules.clearing(), "clear")

    # --- Resurfacing & deletion ---------------------------------------

    async def set_resurface_date(
        self, submission_id: str, resurface_date: Optional[datetime]
    ) -> SubmissionRecord:
        if resurface_date is not None and resurface_date.tzinfo is None:
            raise ValidationError(
                "Resurface date must include a time zone",
                submission_id=submission_id,
                operation="update_resurface_date",
            )
        updated = await self._call(
            "update_resurface_date",
            submission_id,
            lambda: self.store.update_resurface_date(submission_id, resurface_date),
        )
        logger.info(
            "submission_resurface_date_set",
            submission_id=submission_id,
            resurface_date=resurface_date.isoformat() if resurface_date else None,
        )
        return updated

    async def clear_resurface_date(self, submission_id: str) -> SubmissionRecord:
        return await self.set_resurface_date(submission_id, None)

    async def soft_delete(self, submission_id: str) -> None:
        await self._call("soft_delete", submission_id, lambda: self.store.soft_delete(submission_id))

    # --- Notes --------------------------------------------------------

    async def add_note(
        self,
        submission_id: str,
        note_text: str,
        author_id: str,
        note_type: str = NoteType.GENERAL.value,
    ) -> NoteRecord:
        text = (note_text or "").strip()
        if not text:
            raise ValidationError(
                "Note text must not be empty",
                submission_id=submission_id,
                operation="add_note",
            )
        if note_type not in NOTE_TYPES:
            raise ValidationError(
                f"Unknown note type '{note_type}'. Expected one of: {', '.join(NOTE_TYPES)}",
                submission_id=submission_id,
                operation="add_note",
            )

        note = await self._call(
            "add_note",
            submission_id,
            lambda: self.store.add_note(submission_id, text, note_type, author_id),
        )
        logger.info(
            "submission_note_added",
            submission_id=submission_id,
            note_id=note.id,
            note_type=note_type,
        )
        return note

    async def list_notes(
        self, submission_id: str, limit: Optional[int] = None
    ) -> list[NoteRecord]:
        return await self._call(
            "list_notes", submission_id, lambda: self.store.list_notes(submission_id, limit)
        )

    # --- Suggestion context -------------------------------------------

    async def suggestion_context(
        self, submission_id: str, further_context: Optional[str] = None
    ) -> SuggestionContext:
        """Snapshot for the external suggestion generator."""
        submission = await self.get(submission_id)
        notes = await self.list_notes(submission_id, limit=settings.suggestion_recent_notes)
        return SuggestionContext(
            submission=submission,
            tags=list(submission.tags),
            recent_notes=notes,
            further_context=(further_context or "").strip() or None,
            action_label=rules.action_label(submission.status),
        )
