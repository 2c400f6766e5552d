"""Submission repository — the only code that touches submission tables."""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional, Protocol

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.errors import NotFound, StoreUnavailable
from src.lifecycle.rules import TagTransform
from src.models.submission import Submission, SubmissionNote
from src.schemas.submission import NewSubmission, NoteRecord, SubmissionRecord

logger = structlog.get_logger()


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class SubmissionStore(Protocol):
    """Persistence operations the lifecycle layer relies on."""

    async def create(self, data: NewSubmission) -> SubmissionRecord: ...

    async def get(self, submission_id: str) -> SubmissionRecord: ...

    async def list_active(self) -> list[SubmissionRecord]: ...

    async def update_status(
        self, submission_id: str, status: str, resurface_date: Any = UNSET
    ) -> SubmissionRecord: ...

    async def update_tags(self, submission_id: str, tags: list[str]) -> SubmissionRecord: ...

    async def apply_tags(
        self, submission_id: str, transform: TagTransform
    ) -> SubmissionRecord: ...

    async def update_resurface_date(
        self, submission_id: str, resurface_date: Optional[datetime]
    ) -> SubmissionRecord: ...

    async def soft_delete(self, submission_id: str) -> None: ...

    async def add_note(
        self, submission_id: str, note_text: str, note_type: str, author_id: str
    ) -> NoteRecord: ...

    async def list_notes(
        self, submission_id: str, limit: Optional[int] = None
    ) -> list[NoteRecord]: ...

    async def count_recent_from_ip(self, ip_address: str, since: datetime) -> int: ...


def to_record(row: Submission) -> SubmissionRecord:
    return SubmissionRecord(
        id=str(row.id),
        created_at=row.created_at,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        company=row.company,
        role=row.role,
        interest_area=row.interest_area,
        goals=row.goals,
        status=row.status,
        tags=list(row.tags or []),
        resurface_date=row.resurface_date,
        deleted_at=row.deleted_at,
        version=row.version,
    )


def to_note_record(row: SubmissionNote) -> NoteRecord:
    return NoteRecord(
        id=str(row.id),
        submission_id=str(row.submission_id),
        note_text=row.note_text,
        note_type=row.note_type,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _parse_id(submission_id: str, operation: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(submission_id))
    except ValueError:
        # A malformed id can never match a row
        raise NotFound(submission_id=submission_id, operation=operation) from None


class SubmissionRepository:
    """Async SQLAlchemy implementation of :class:`SubmissionStore`."""

    def __init__(self, db: AsyncSession, cas_retries: Optional[int] = None):
        self.db = db
        self.cas_retries = cas_retries or settings.store_cas_retries

    @contextmanager
    def _guard(self, operation: str, submission_id: Optional[str] = None) -> Iterator[None]:
        """Translate driver/database failures into StoreUnavailable."""
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(
                "submission_store_error",
                operation=operation,
                submission_id=submission_id,
                error=str(e),
            )
            raise StoreUnavailable(
                submission_id=submission_id, operation=operation, detail=str(e)
            ) from e

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning("submission_store_rollback_failed", error=str(e))

    async def _fetch_active(self, key: uuid.UUID) -> Optional[Submission]:
        result = await self.db.execute(
            select(Submission)
            .where(Submission.id == key, Submission.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _update_active(
        self, submission_id: str, operation: str, values: dict[str, Any]
    ) -> SubmissionRecord:
        """Single-statement update of a live submission, bumping its version."""
        key = _parse_id(submission_id, operation)
        with self._guard(operation, submission_id):
            try:
                result = await self.db.execute(
                    update(Submission)
                    .where(Submission.id == key, Submission.deleted_at.is_(None))
                    .values(
                        **values,
                        version=Submission.version + 1,
                        updated_at=datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    await self._rollback()
                    raise NotFound(submission_id=submission_id, operation=operation)
                await self.db.commit()
                row = await self._fetch_active(key)
            except SQLAlchemyError:
                await self._rollback()
                raise
        if row is None:
            raise NotFound(submission_id=submission_id, operation=operation)
        return to_record(row)

    async def create(self, data: NewSubmission) -> SubmissionRecord:
        """Insert a new contact submission with status ``new`` and no tags."""
        submission = Submission(**data.model_dump(), status="new", tags=[], version=1)
        with self._guard("create"):
            try:
                self.db.add(submission)
                await self.db.commit()
                await self.db.refresh(submission)
            except SQLAlchemyError:
                await self._rollback()
                raise

        logger.info(
            "submission_created",
            submission_id=str(submission.id),
            ip_address=data.ip_address,
        )
        return to_record(submission)

    async def get(self, submission_id: str) -> SubmissionRecord:
        key = _parse_id(submission_id, "get")
        with self._guard("get", submission_id):
            row = await self._fetch_active(key)
        if row is None:
            raise NotFound(submission_id=submission_id, operation="get")
        return to_record(row)

    async def list_active(self) -> list[SubmissionRecord]:
        """All submissions that are not soft deleted, newest first."""
        with self._guard("list_active"):
            result = await self.db.execute(
                select(Submission)
                .where(Submission.deleted_at.is_(None))
                .order_by(Submission.created_at.desc())
            )
            rows = result.scalars().all()
        return [to_record(row) for row in rows]

    async def update_status(
        self, submission_id: str, status: str, resurface_date: Any = UNSET
    ) -> SubmissionRecord:
        """Replace the status. ``resurface_date`` is written only when passed."""
        values: dict[str, Any] = {"status": status}
        if resurface_date is not UNSET:
            values["resurface_date"] = resurface_date
        return await self._update_active(submission_id, "update_status", values)

    async def update_tags(self, submission_id: str, tags: list[str]) -> SubmissionRecord:
        """Replace the whole tag list."""
        return await self._update_active(submission_id, "update_tags", {"tags": list(tags)})

    async def apply_tags(
        self, submission_id: str, transform: TagTransform
    ) -> SubmissionRecord:
        """Read, transform and write tags as one compare-and-swap on ``version``.

        A concurrent writer bumps the version, our UPDATE then matches no row
        and we retry against the fresh tags.
        """
        operation = "update_tags"
        key = _parse_id(submission_id, operation)

        for attempt in range(1, self.cas_retries + 1):
            with self._guard(operation, submission_id):
                try:
                    result = await self.db.execute(
                        select(Submission.tags, Submission.version).where(
                            Submission.id == key, Submission.deleted_at.is_(None)
                        )
                    )
                    current = result.one_or_none()
                    if current is None:
                        await self._rollback()
                        raise NotFound(submission_id=submission_id, operation=operation)

                    tags = list(current.tags or [])
                    new_tags = transform(tags)
                    if new_tags == tags:
                        await self._rollback()
                        return await self.get(submission_id)

                    result = await self.db.execute(
                        update(Submission)
                        .where(
                            Submission.id == key,
                            Submission.version == current.version,
                            Submission.deleted_at.is_(None),
                        )
                        .values(
                            tags=new_tags,
                            version=current.version + 1,
                            updated_at=datetime.now(timezone.utc),
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 1:
                        await self.db.commit()
                        return await self.get(submission_id)

                    await self._rollback()
                except SQLAlchemyError:
                    await self._rollback()
                    raise

            logger.info(
                "submission_tags_conflict",
                submission_id=submission_id,
                attempt=attempt,
            )

        raise StoreUnavailable(
            "The submission is being edited elsewhere, please retry",
            submission_id=submission_id,
            operation=operation,
        )

    async def update_resurface_date(
        self, submission_id: str, resurface_date: Optional[datetime]
    ) -> SubmissionRecord:
        return await self._update_active(
            submission_id, "update_resurface_date", {"resurface_date": resurface_date}
        )

    async def soft_delete(self, submission_id: str) -> None:
        """Mark deleted. Deleting an already deleted submission is a no-op."""
        operation = "soft_delete"
        key = _parse_id(submission_id, operation)
        with self._guard(operation, submission_id):
            try:
                result = await self.db.execute(
                    update(Submission)
                    .where(Submission.id == key, Submission.deleted_at.is_(None))
                    .values(
                        deleted_at=datetime.now(timezone.utc),
                        version=Submission.version + 1,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    exists = await self.db.execute(
                        select(func.count()).select_from(Submission).where(Submission.id == key)
                    )
                    await self._rollback()
                    if exists.scalar_one() == 0:
                        raise NotFound(submission_id=submission_id, operation=operation)
                    return
                await self.db.commit()
            except SQLAlchemyError:
                await self._rollback()
                raise

        logger.info("submission_soft_deleted", submission_id=submission_id)

    async def add_note(
        self, submission_id: str, note_text: str, note_type: str, author_id: str
    ) -> NoteRecord:
        operation = "add_note"
        key = _parse_id(submission_id, operation)
        with self._guard(operation, submission_id):
            try:
                if await self._fetch_active(key) is None:
                    raise NotFound(submission_id=submission_id, operation=operation)
                note = SubmissionNote(
                    submission_id=key,
                    note_text=note_text,
                    note_type=note_type,
                    created_by=author_id,
                )
                self.db.add(note)
                await self.db.commit()
                await self.db.refresh(note)
            except SQLAlchemyError:
                await self._rollback()
                raise
        return to_note_record(note)

    async def list_notes(
        self, submission_id: str, limit: Optional[int] = None
    ) -> list[NoteRecord]:
        """Notes newest first. Works for soft deleted submissions too."""
        key = _parse_id(submission_id, "list_notes")
        stmt = (
            select(SubmissionNote)
            .where(SubmissionNote.submission_id == key)
            .order_by(SubmissionNote.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._guard("list_notes", submission_id):
            result = await self.db.execute(stmt)
            rows = result.scalars().all()
        return [to_note_record(row) for row in rows]

    async def count_recent_from_ip(self, ip_address: str, since: datetime) -> int:
        with self._guard("count_recent_from_ip"):
            result = await self.db.execute(
                select(func.count())
                .select_from(Submission)
                .where(Submission.ip_address == ip_address, Submission.created_at >= since)
            )
            return result.scalar_one()
