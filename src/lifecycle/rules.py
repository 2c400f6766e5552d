"""Pure pipeline rules: statuses, resurfacing, buckets, tag transforms."""

from __future__ import annotations

import calendar
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Iterable, Optional

from src.errors import ValidationError
from src.schemas.submission import SubmissionRecord, SubmissionStatus

STATUSES = tuple(s.value for s in SubmissionStatus)

REVISIT_BUCKET = "revisit"
ALL_BUCKET = "all"
BUCKETS = (REVISIT_BUCKET, ALL_BUCKET) + STATUSES

ACTION_LABELS = MappingProxyType(
    {
        "new": "Draft Intro Email",
        "lead": "Plan Follow-Up",
        "client": "Draft Next Steps",
        "closed": "Send Thank-You",
    }
)
DEFAULT_ACTION_LABEL = "Suggest Action"

TagTransform = Callable[[list[str]], list[str]]


def validate_status(status: str) -> str:
    """Return the status if it is a known pipeline stage.

    Any stage may move to any other stage; only unknown values are rejected.
    """
    if status not in STATUSES:
        raise ValidationError(
            f"Unknown status '{status}'. Expected one of: {', '.join(STATUSES)}",
            operation="update_status",
        )
    return status


def action_label(status: str) -> str:
    """Suggested next action for an operator, by status."""
    return ACTION_LABELS.get(status, DEFAULT_ACTION_LABEL)


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's end."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def resurface_date_for_transition(
    new_status: str,
    now: datetime,
    *,
    auto_resurface_on_close: bool,
    months: int,
) -> Optional[datetime]:
    """Resurface date a status change should schedule, or None to leave it alone."""
    if auto_resurface_on_close and new_status == SubmissionStatus.CLOSED.value:
        return add_months(now, months)
    return None


def is_due_for_revisit(submission: SubmissionRecord, now: datetime) -> bool:
    """True when a resurface date is set and has passed. Status is irrelevant."""
    return submission.resurface_date is not None and submission.resurface_date <= now


def in_bucket(submission: SubmissionRecord, bucket: str, now: datetime) -> bool:
    if bucket == REVISIT_BUCKET:
        return is_due_for_revisit(submission, now)
    if bucket == ALL_BUCKET:
        # Anything with a resurface date has left the normal flow until handled
        return submission.resurface_date is None
    return submission.status == bucket and not is_due_for_revisit(submission, now)


def sort_for_listing(
    submissions: Iterable[SubmissionRecord], now: datetime
) -> list[SubmissionRecord]:
    """Due submissions first, then newest first."""
    newest_first = sorted(submissions, key=lambda s: s.created_at, reverse=True)
    return sorted(newest_first, key=lambda s: not is_due_for_revisit(s, now))


def filter_bucket(
    submissions: Iterable[SubmissionRecord], bucket: str, now: datetime
) -> list[SubmissionRecord]:
    if bucket not in BUCKETS:
        raise ValidationError(
            f"Unknown bucket '{bucket}'. Expected one of: {', '.join(BUCKETS)}",
            operation="list_submissions",
        )
    return sort_for_listing((s for s in submissions if in_bucket(s, bucket, now)), now)


def bucket_counts(submissions: Iterable[SubmissionRecord], now: datetime) -> dict[str, int]:
    counts = dict.fromkeys(BUCKETS, 0)
    for submission in submissions:
        for bucket in BUCKETS:
            if in_bucket(submission, bucket, now):
                counts[bucket] += 1
    return counts


# Tag transforms. Each takes the current list and returns the new one;
# the store applies them atomically.


def _clean_tag(tag: str) -> str:
    cleaned = (tag or "").strip()
    if not cleaned:
        raise ValidationError("Tag must not be empty", operation="update_tags")
    return cleaned


def adding(tag: str) -> TagTransform:
    tag = _clean_tag(tag)

    def transform(tags: list[str]) -> list[str]:
        if tag in tags:
            return list(tags)
        return [*tags, tag]

    return transform


def removing(tag: str) -> TagTransform:
    tag = _clean_tag(tag)

    def transform(tags: list[str]) -> list[str]:
        return [t for t in tags if t != tag]

    return transform


def clearing() -> TagTransform:
    return lambda tags: []
