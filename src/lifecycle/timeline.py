"""Notes timeline helpers: day grouping, relative ages, search, templates."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Optional

from src.errors import ValidationError
from src.schemas.submission import NoteRecord, NoteType, SubmissionRecord

QUICK_TEMPLATES = {
    "call": "Had a call with {{name}}. Discussed:\n\n• \n• \n\nNext steps:\n• ",
    "email": "Sent email to {{name}} regarding:\n\n• \n\nWaiting for response on:\n• ",
    "meeting": (
        "Meeting with {{name}}:\n\nAttendees: \nTopics covered:\n• \n• \n\n"
        "Action items:\n• "
    ),
    "followup": "Follow-up required:\n\n• When: \n• What: \n• Why: ",
}

NAME_PLACEHOLDER = "{{name}}"


@dataclass
class NoteDayGroup:
    """Consecutive notes that fall on the same calendar day."""

    label: str
    day: date
    notes: list[NoteRecord] = field(default_factory=list)


def day_label(moment: datetime, now: datetime, tz: tzinfo) -> str:
    """Divider text for the calendar day of ``moment`` as seen in ``tz``."""
    day = moment.astimezone(tz).date()
    today = now.astimezone(tz).date()

    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"

    label = f"{day:%A}, {day:%B} {day.day}"
    if day.year != today.year:
        label += f", {day.year}"
    return label


def group_by_day(
    notes: Iterable[NoteRecord], now: datetime, tz: tzinfo
) -> list[NoteDayGroup]:
    """Split notes (in display order) into day groups.

    A new group, and therefore a divider, starts whenever a note's calendar
    day differs from the previous note's.
    """
    groups: list[NoteDayGroup] = []
    for note in notes:
        day = note.created_at.astimezone(tz).date()
        if not groups or groups[-1].day != day:
            groups.append(NoteDayGroup(label=day_label(note.created_at, now, tz), day=day))
        groups[-1].notes.append(note)
    return groups


def relative_age(created_at: datetime, now: datetime, tz: Optional[tzinfo] = None) -> str:
    """Short "how long ago" text for a timeline entry."""
    seconds = (now - created_at).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    # Future timestamps (clock skew) read as just now
    if seconds < 60:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"

    local = created_at.astimezone(tz) if tz else created_at
    return f"{local:%b} {local.day}, {local:%I:%M %p}"


def filter_by_text(notes: Iterable[NoteRecord], query: str) -> list[NoteRecord]:
    """Case-insensitive substring match on note text. Empty query keeps all."""
    if not query:
        return list(notes)
    needle = query.lower()
    return [note for note in notes if needle in note.note_text.lower()]


def render_template(
    template: str, submission: Optional[SubmissionRecord]
) -> tuple[str, str]:
    """Fill a quick template for a submission.

    Returns:
        (note_text, note_type). The follow-up template produces a general note.
    """
    if template not in QUICK_TEMPLATES:
        raise ValidationError(
            f"Unknown template '{template}'. Expected one of: {', '.join(QUICK_TEMPLATES)}",
            operation="render_template",
        )

    name = submission.full_name if submission else "the contact"
    text = QUICK_TEMPLATES[template].replace(NAME_PLACEHOLDER, name, 1)
    note_type = NoteType.GENERAL.value if template == "followup" else template
    return text, note_type
