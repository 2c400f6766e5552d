"""Submission and note read models, request bodies and API responses."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SubmissionStatus(str, Enum):
    """Pipeline stage of a lead."""

    NEW = "new"
    LEAD = "lead"
    CLIENT = "client"
    CLOSED = "closed"


class NoteType(str, Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    GENERAL = "general"


class SubmissionRecord(BaseModel):
    """A submission exactly as stored. All fields always present."""

    id: str
    created_at: datetime
    first_name: str
    last_name: str
    email: str
    company: Optional[str] = None
    role: Optional[str] = None
    interest_area: Optional[str] = None
    goals: Optional[str] = None
    status: str = SubmissionStatus.NEW.value
    tags: list[str] = []
    resurface_date: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    version: int = 1

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class NoteRecord(BaseModel):
    """An immutable timeline entry."""

    id: str
    submission_id: str
    note_text: str
    note_type: str = NoteType.GENERAL.value
    created_by: str
    created_at: datetime


class NewSubmission(BaseModel):
    """Sanitised contact-form fields ready for a single insert."""

    first_name: str
    last_name: str
    email: str
    company: Optional[str] = None
    role: Optional[str] = None
    interest_area: Optional[str] = None
    goals: Optional[str] = None
    ip_address: str = "unknown"
    user_agent: str = "unknown"


# --- Request bodies -------------------------------------------------------


class ContactSubmissionIn(BaseModel):
    """Public contact form payload (camelCase, as the site posts it)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    firstName: str = Field(min_length=1, max_length=100)
    lastName: str = Field(min_length=1, max_length=100)
    email: EmailStr = Field(max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    role: Optional[str] = Field(None, max_length=100)
    interestArea: Optional[str] = Field(None, max_length=100)
    goals: Optional[str] = Field(None, max_length=2000)


class StatusUpdateIn(BaseModel):
    status: str


class TagIn(BaseModel):
    tag: str = Field(min_length=1, max_length=100)


class ResurfaceDateIn(BaseModel):
    resurface_date: Optional[datetime] = None


class NoteIn(BaseModel):
    note_text: str = Field(min_length=1, max_length=10000)
    note_type: str = NoteType.GENERAL.value


class SuggestionContextIn(BaseModel):
    further_context: Optional[str] = Field(None, max_length=2000)


# --- Responses ------------------------------------------------------------


class TagView(BaseModel):
    tag: str
    category: str
    color_class: str


class SubmissionRow(BaseModel):
    """One dashboard row: the stored record plus derived display fields."""

    submission: SubmissionRecord
    due_for_revisit: bool
    action_label: str
    tags: list[TagView]


class SubmissionListResponse(BaseModel):
    bucket: str
    submissions: list[SubmissionRow]
    counts: dict[str, int]


class NoteView(BaseModel):
    note: NoteRecord
    type_label: str
    type_color_class: str
    relative_age: str


class NoteDayGroupView(BaseModel):
    label: str
    notes: list[NoteView]


class NotesTimelineResponse(BaseModel):
    submission_id: str
    query: str = ""
    total: int
    groups: list[NoteDayGroupView]


class QuickTemplateResponse(BaseModel):
    template: str
    note_type: str
    note_text: str


class SuggestionContext(BaseModel):
    """Read-only snapshot handed to the external suggestion generator."""

    submission: SubmissionRecord
    tags: list[str]
    recent_notes: list[NoteRecord]
    further_context: Optional[str] = None
    action_label: str
