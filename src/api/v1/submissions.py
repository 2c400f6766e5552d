"""Submissions API — for the admin dashboard."""

from __future__ import annotations

from typing import Optional
from zoneinfo import ZoneInfo

import structlog
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.admin.dependencies import AdminUser, get_current_admin
from src.config import settings
from src.database import get_db
from src.lifecycle import rules, timeline
from src.lifecycle.service import SubmissionLifecycle
from src.lifecycle.taxonomy import available_tags, category_of, color_class_of, note_type_display
from src.repositories.submission import SubmissionRepository
from src.schemas.submission import (
    NoteDayGroupView,
    NoteIn,
    NoteRecord,
    NotesTimelineResponse,
    NoteView,
    QuickTemplateResponse,
    ResurfaceDateIn,
    StatusUpdateIn,
    SubmissionListResponse,
    SubmissionRecord,
    SubmissionRow,
    SuggestionContext,
    SuggestionContextIn,
    TagIn,
    TagView,
)

logger = structlog.get_logger()

router = APIRouter(
    prefix="/api/v1/admin/submissions",
    tags=["submissions"],
    dependencies=[Depends(get_current_admin)],
)


def get_lifecycle(db: AsyncSession = Depends(get_db)) -> SubmissionLifecycle:
    return SubmissionLifecycle(SubmissionRepository(db))


def display_tz() -> ZoneInfo:
    return ZoneInfo(settings.display_timezone)


def to_row(lifecycle: SubmissionLifecycle, submission: SubmissionRecord) -> SubmissionRow:
    return SubmissionRow(
        submission=submission,
        due_for_revisit=lifecycle.is_due_for_revisit(submission),
        action_label=rules.action_label(submission.status),
        tags=[
            TagView(tag=tag, category=category_of(tag), color_class=color_class_of(tag))
            for tag in submission.tags
        ],
    )


def to_note_view(note: NoteRecord, lifecycle: SubmissionLifecycle) -> NoteView:
    label, color = note_type_display(note.note_type)
    return NoteView(
        note=note,
        type_label=label,
        type_color_class=color,
        relative_age=timeline.relative_age(note.created_at, lifecycle.clock(), display_tz()),
    )


@router.get("", response_model=SubmissionListResponse)
async def list_submissions(
    bucket: str = Query(rules.ALL_BUCKET, description="revisit, all, or a status"),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> SubmissionListResponse:
    """List active submissions in one dashboard bucket, with counts for all buckets."""
    submissions, counts = await lifecycle.list_bucket(bucket)
    return SubmissionListResponse(
        bucket=bucket,
        submissions=[to_row(lifecycle, s) for s in submissions],
        counts=counts,
    )


@router.get("/{submission_id}", response_model=SubmissionRow)
async def get_submission(
    submission_id: str,
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> SubmissionRow:
    return to_row(lifecycle, await lifecycle.get(submission_id))


@router.get("/{submission_id}/available-tags")
async def get_available_tags(
    submission_id: str,
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> dict:
    submission = await lifecycle.get(submission_id)
    return {"tags": available_tags(submission.tags)}


@router.patch("/{submission_id}/status", response_model=SubmissionRow)
async def update_status(
    submission_id: str,
    data: StatusUpdateIn,
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> SubmissionRow:
    return to_row(lifecycle, await lifecycle.change_status(submission_id, data.status))


@router.post("/{submission_id}/tags", response_model=SubmissionRow)
async def add_tag(
    submission_id: str,
    data: TagIn,
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> SubmissionRow:
    return to_row(lifecycle, await lifecycle.add_tag(submission_id, data.tag))


@router.delete("/{submission_id}/tags/{tag:path}", response_model=SubmissionRow)
async def remove_tag(
    submission_id: str,
    tag: str,
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> SubmissionRow:
    return to_row(lifecycle, await lifecycle.remove_tag(submission_id, tag))


@router.delete("/{submission_id}/tags", response_model=SubmissionRow)
async def clear_tags(
    submission_id: str,
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> SubmissionRow:
    return to_row(lifecycle, await lifecycle.clear_tags(submission_id))


@router.put("/{submission_id}/resurface-date", response_model=SubmissionRow)
async def set_resurface_date(
    submission_id: str,
    data: ResurfaceDateIn,
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> SubmissionRow:
    """Set the resurface date; ``null`` clears it."""
    return to_row(lifecycle, await lifecycle.set_resurface_date(submission_id, data.resurface_date))


@router.delete("/{submission_id}", status_code=204)
async def delete_submission(
    submission_id: str,
    admin: AdminUser = Depends(get_current_admin),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> Response:
    await lifecycle.soft_delete(submission_id)
    logger.info("submission_deleted_by_admin", submission_id=submission_id, user_id=admin.user_id)
    return Response(status_code=204)


@router.get("/{submission_id}/notes", response_model=NotesTimelineResponse)
async def list_notes(
    submission_id: str,
    q: str = Query("", description="Case-insensitive text filter"),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> NotesTimelineResponse:
    """Notes newest first, grouped by calendar day in the display time zone."""
    notes = timeline.filter_by_text(await lifecycle.list_notes(submission_id), q)
    groups = timeline.group_by_day(notes, lifecycle.clock(), display_tz())
    return NotesTimelineResponse(
        submission_id=submission_id,
        query=q,
        total=len(notes),
        groups=[
            NoteDayGroupView(
                label=group.label,
                notes=[to_note_view(note, lifecycle) for note in group.notes],
            )
            for group in groups
        ],
    )


@router.post("/{submission_id}/notes", response_model=NoteView, status_code=201)
async def add_note(
    submission_id: str,
    data: NoteIn,
    admin: AdminUser = Depends(get_current_admin),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> NoteView:
    note = await lifecycle.add_note(submission_id, data.note_text, admin.user_id, data.note_type)
    return to_note_view(note, lifecycle)


@router.get("/{submission_id}/templates/{template}", response_model=QuickTemplateResponse)
async def render_quick_template(
    submission_id: str,
    template: str,
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> QuickTemplateResponse:
    submission = await lifecycle.get(submission_id)
    text, note_type = timeline.render_template(template, submission)
    return QuickTemplateResponse(template=template, note_type=note_type, note_text=text)


@router.post("/{submission_id}/suggestion-context", response_model=SuggestionContext)
async def suggestion_context(
    submission_id: str,
    data: Optional[SuggestionContextIn] = None,
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
) -> SuggestionContext:
    """Read-only snapshot for the external next-action generator."""
    further = data.further_context if data else None
    return await lifecycle.suggestion_context(submission_id, further)
