"""Test fixtures and configuration."""

import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from src.errors import NotFound
from src.lifecycle.service import SubmissionLifecycle
from src.repositories.submission import UNSET
from src.schemas.submission import NewSubmission, NoteRecord, SubmissionRecord

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock shared by the store and the lifecycle."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class InMemorySubmissionStore:
    """Dict-backed store with the same contract as SubmissionRepository."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.submissions: dict[str, SubmissionRecord] = {}
        self.ips: dict[str, str] = {}
        self.notes: list[NoteRecord] = []
        self._seq = itertools.count()

    def _live(self, submission_id: str, operation: str) -> SubmissionRecord:
        record = self.submissions.get(submission_id)
        if record is None or record.deleted_at is not None:
            raise NotFound(submission_id=submission_id, operation=operation)
        return record

    def _save(self, record: SubmissionRecord, **changes) -> SubmissionRecord:
        updated = record.model_copy(update={**changes, "version": record.version + 1})
        self.submissions[record.id] = updated
        return updated

    async def create(self, data: NewSubmission) -> SubmissionRecord:
        # Keep insertion order strictly increasing even on a frozen clock
        created_at = self.clock() + timedelta(microseconds=next(self._seq))
        record = SubmissionRecord(
            id=str(uuid.uuid4()),
            created_at=created_at,
            **data.model_dump(exclude={"ip_address", "user_agent"}),
        )
        self.submissions[record.id] = record
        self.ips[record.id] = data.ip_address
        return record

    async def get(self, submission_id: str) -> SubmissionRecord:
        return self._live(submission_id, "get")

    async def list_active(self) -> list[SubmissionRecord]:
        live = [s for s in self.submissions.values() if s.deleted_at is None]
        return sorted(live, key=lambda s: s.created_at, reverse=True)

    async def update_status(self, submission_id, status, resurface_date=UNSET):
        changes = {"status": status}
        if resurface_date is not UNSET:
            changes["resurface_date"] = resurface_date
        return self._save(self._live(submission_id, "update_status"), **changes)

    async def update_tags(self, submission_id, tags):
        return self._save(self._live(submission_id, "update_tags"), tags=list(tags))

    async def apply_tags(self, submission_id, transform):
        record = self._live(submission_id, "update_tags")
        new_tags = transform(list(record.tags))
        if new_tags == record.tags:
            return record
        return self._save(record, tags=new_tags)

    async def update_resurface_date(self, submission_id, resurface_date):
        record = self._live(submission_id, "update_resurface_date")
        return self._save(record, resurface_date=resurface_date)

    async def soft_delete(self, submission_id):
        record = self.submissions.get(submission_id)
        if record is None:
            raise NotFound(submission_id=submission_id, operation="soft_delete")
        if record.deleted_at is None:
            self._save(record, deleted_at=self.clock())

    async def add_note(self, submission_id, note_text, note_type, author_id):
        self._live(submission_id, "add_note")
        note = NoteRecord(
            id=str(uuid.uuid4()),
            submission_id=submission_id,
            note_text=note_text,
            note_type=note_type,
            created_by=author_id,
            created_at=self.clock() + timedelta(microseconds=next(self._seq)),
        )
        self.notes.append(note)
        return note

    async def list_notes(self, submission_id, limit: Optional[int] = None):
        notes = sorted(
            (n for n in self.notes if n.submission_id == submission_id),
            key=lambda n: n.created_at,
            reverse=True,
        )
        return notes[:limit] if limit is not None else notes

    async def count_recent_from_ip(self, ip_address, since):
        return sum(
            1
            for sid, ip in self.ips.items()
            if ip == ip_address and self.submissions[sid].created_at >= since
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemorySubmissionStore(clock)


@pytest.fixture
def lifecycle(store, clock):
    """Lifecycle with the resurface-on-close policy off (the default)."""
    return SubmissionLifecycle(store, auto_resurface_on_close=False, clock=clock)


@pytest.fixture
def make_submission(store):
    """Create a submission through the store, as the contact form would."""

    async def _make(first_name="Ada", last_name="Lovelace", **fields):
        ip_address = fields.pop("ip_address", "203.0.113.7")
        record = await store.create(
            NewSubmission(
                first_name=first_name,
                last_name=last_name,
                email=fields.pop("email", f"{first_name.lower()}@example.com"),
                ip_address=ip_address,
                **{k: v for k, v in fields.items() if k in NewSubmission.model_fields},
            )
        )
        extra = {k: v for k, v in fields.items() if k not in NewSubmission.model_fields}
        if extra:
            record = record.model_copy(update=extra)
            store.submissions[record.id] = record
        return record

    return _make
