"""Tag taxonomy and note type tables.

Tags fall into three fixed categories:

- activity: actions taken with the lead
- service: what the client is asking for
- status: qualifiers for the lead

Anything outside the fixed lists is treated as a status qualifier.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable

ACTIVITY_TAGS = (
    "Email Sent",
    "Call Made",
    "Meeting Held",
    "Proposal Sent",
    "Follow-up Scheduled",
)

SERVICE_TAGS = (
    "AI Strategy",
    "Team Training",
    "Implementation",
    "Ongoing Mentorship",
    "Resource Access",
)

STATUS_TAGS = (
    "Hot Lead",
    "Budget Approved",
    "Decision Maker",
    "Follow-up Required",
    "Waiting on Client",
)

ALL_SUBMISSION_TAGS = ACTIVITY_TAGS + SERVICE_TAGS + STATUS_TAGS

TAG_CATEGORIES = ("activity", "service", "status")

_CATEGORY_BY_TAG = MappingProxyType(
    {
        **{tag: "activity" for tag in ACTIVITY_TAGS},
        **{tag: "service" for tag in SERVICE_TAGS},
        **{tag: "status" for tag in STATUS_TAGS},
    }
)

CATEGORY_COLORS = MappingProxyType(
    {
        "activity": "bg-blue-100 text-blue-800 border-blue-200",
        "service": "bg-green-100 text-green-800 border-green-200",
        "status": "bg-orange-100 text-orange-800 border-orange-200",
    }
)

NEUTRAL_COLOR = "bg-gray-100 text-gray-800 border-gray-200"


def category_of(tag: str) -> str:
    """Return the category a tag belongs to (``status`` when unknown)."""
    return _CATEGORY_BY_TAG.get(tag, "status")


def color_class_of(tag: str) -> str:
    """CSS classes for a tag badge, derived from its category."""
    return CATEGORY_COLORS.get(category_of(tag), NEUTRAL_COLOR)


def available_tags(current: Iterable[str]) -> list[str]:
    """Known tags not applied yet, in taxonomy order."""
    applied = set(current)
    return [tag for tag in ALL_SUBMISSION_TAGS if tag not in applied]


# Note types: (label, badge color)
NOTE_TYPES = MappingProxyType(
    {
        "call": ("Phone Call", "bg-blue-100 text-blue-800 border-blue-200"),
        "email": ("Email", "bg-green-100 text-green-800 border-green-200"),
        "meeting": ("Meeting", "bg-purple-100 text-purple-800 border-purple-200"),
        "general": ("General", NEUTRAL_COLOR),
    }
)


def note_type_display(note_type: str) -> tuple[str, str]:
    """Label and color for a note type; unknown types render as general."""
    return NOTE_TYPES.get(note_type, NOTE_TYPES["general"])
