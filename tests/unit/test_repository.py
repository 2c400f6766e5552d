"""Tests for SubmissionRepository error mapping and tag compare-and-swap."""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.errors import NotFound, StoreUnavailable
from src.lifecycle.rules import adding
from src.models.submission import Submission, SubmissionNote
from src.repositories.submission import SubmissionRepository
from src.schemas.submission import NewSubmission

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)
SUBMISSION_ID = str(uuid.UUID("8a1f7c2e-5b0d-4c1e-9f3a-2d6b7e8c9a01"))


@pytest.fixture
def mock_db():
    return MagicMock(spec=AsyncSession)


@pytest.fixture
def repo(mock_db):
    return SubmissionRepository(mock_db, cas_retries=2)


def _row(**fields) -> Submission:
    values = dict(
        id=uuid.UUID(SUBMISSION_ID),
        created_at=NOW,
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        status="new",
        tags=[],
        version=1,
    )
    values.update(fields)
    return Submission(**values)


def _fetched(row):
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    return result


def _tags_read(tags, version):
    result = MagicMock()
    result.one_or_none.return_value = SimpleNamespace(tags=tags, version=version)
    return result


def _updated(rowcount):
    return MagicMock(rowcount=rowcount)


class TestGet:
    @pytest.mark.asyncio
    async def test_malformed_id_is_not_found(self, repo, mock_db):
        with pytest.raises(NotFound) as exc_info:
            await repo.get("not-a-uuid")
        assert exc_info.value.operation == "get"
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_row(self, repo, mock_db):
        mock_db.execute.return_value = _fetched(None)
        with pytest.raises(NotFound):
            await repo.get(SUBMISSION_ID)

    @pytest.mark.asyncio
    async def test_maps_row(self, repo, mock_db):
        mock_db.execute.return_value = _fetched(_row(tags=["Call"], status="lead"))
        record = await repo.get(SUBMISSION_ID)
        assert record.id == SUBMISSION_ID
        assert record.tags == ["Call"]
        assert record.status == "lead"

    @pytest.mark.asyncio
    async def test_database_error_is_retryable(self, repo, mock_db):
        mock_db.execute.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))
        with pytest.raises(StoreUnavailable) as exc_info:
            await repo.get(SUBMISSION_ID)
        assert exc_info.value.submission_id == SUBMISSION_ID
        assert exc_info.value.status_code == 503


class TestCreate:
    @pytest.mark.asyncio
    async def test_inserts_new_submission(self, repo, mock_db):
        async def refresh(obj):
            obj.id = uuid.UUID(SUBMISSION_ID)
            obj.created_at = NOW

        mock_db.refresh.side_effect = refresh
        record = await repo.create(
            NewSubmission(
                first_name="Ada",
                last_name="Lovelace",
                email="ada@example.com",
                ip_address="203.0.113.7",
            )
        )

        added = mock_db.add.call_args.args[0]
        assert added.status == "new"
        assert added.tags == []
        assert added.ip_address == "203.0.113.7"
        mock_db.commit.assert_awaited_once()
        assert record.id == SUBMISSION_ID
        assert record.resurface_date is None

    @pytest.mark.asyncio
    async def test_commit_failure_rolls_back(self, repo, mock_db):
        mock_db.commit.side_effect = SQLAlchemyError("disk full")
        with pytest.raises(StoreUnavailable):
            await repo.create(
                NewSubmission(first_name="Ada", last_name="Lovelace", email="ada@example.com")
            )
        mock_db.rollback.assert_awaited()


class TestUpdates:
    @pytest.mark.asyncio
    async def test_update_status_on_deleted_row(self, repo, mock_db):
        mock_db.execute.return_value = _updated(0)
        with pytest.raises(NotFound) as exc_info:
            await repo.update_status(SUBMISSION_ID, "lead")
        assert exc_info.value.operation == "update_status"
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_status_returns_fresh_row(self, repo, mock_db):
        mock_db.execute.side_effect = [_updated(1), _fetched(_row(status="client", version=2))]
        record = await repo.update_status(SUBMISSION_ID, "client")
        assert record.status == "client"
        assert record.version == 2
        mock_db.commit.assert_awaited_once()


class TestApplyTags:
    @pytest.mark.asyncio
    async def test_retries_after_conflict(self, repo, mock_db):
        mock_db.execute.side_effect = [
            _tags_read(["Email"], 3),
            _updated(0),  # someone else wrote in between
            _tags_read(["Email", "Meeting"], 4),
            _updated(1),
            _fetched(_row(tags=["Email", "Meeting", "Call"], version=5)),
        ]
        record = await repo.apply_tags(SUBMISSION_ID, adding("Call"))
        assert record.tags == ["Email", "Meeting", "Call"]
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self, repo, mock_db):
        mock_db.execute.side_effect = [
            _tags_read(["Email"], 3),
            _updated(0),
            _tags_read(["Email"], 4),
            _updated(0),
        ]
        with pytest.raises(StoreUnavailable) as exc_info:
            await repo.apply_tags(SUBMISSION_ID, adding("Call"))
        assert "retry" in exc_info.value.message
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unchanged_tags_skip_write(self, repo, mock_db):
        mock_db.execute.side_effect = [
            _tags_read(["Call"], 3),
            _fetched(_row(tags=["Call"], version=3)),
        ]
        record = await repo.apply_tags(SUBMISSION_ID, adding("Call"))
        assert record.tags == ["Call"]
        assert mock_db.execute.await_count == 2
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deleted_submission(self, repo, mock_db):
        result = MagicMock()
        result.one_or_none.return_value = None
        mock_db.execute.return_value = result
        with pytest.raises(NotFound):
            await repo.apply_tags(SUBMISSION_ID, adding("Call"))


class TestSoftDelete:
    @pytest.mark.asyncio
    async def test_already_deleted_is_noop(self, repo, mock_db):
        exists = MagicMock()
        exists.scalar_one.return_value = 1
        mock_db.execute.side_effect = [_updated(0), exists]
        await repo.soft_delete(SUBMISSION_ID)
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_never_existed(self, repo, mock_db):
        exists = MagicMock()
        exists.scalar_one.return_value = 0
        mock_db.execute.side_effect = [_updated(0), exists]
        with pytest.raises(NotFound):
            await repo.soft_delete(SUBMISSION_ID)


class TestNotes:
    @pytest.mark.asyncio
    async def test_add_note_to_deleted_submission(self, repo, mock_db):
        mock_db.execute.return_value = _fetched(None)
        with pytest.raises(NotFound) as exc_info:
            await repo.add_note(SUBMISSION_ID, "Called", "call", "op-1")
        assert exc_info.value.operation == "add_note"
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_notes_store_error(self, repo, mock_db):
        mock_db.execute.side_effect = SQLAlchemyError("timeout")
        with pytest.raises(StoreUnavailable):
            await repo.list_notes(SUBMISSION_ID)


class TestModels:
    def test_notes_are_loaded_through_the_repository_only(self):
        # No ORM relationships: notes are read with explicit queries
        assert not Submission.__mapper__.relationships
        assert not SubmissionNote.__mapper__.relationships
        assert SubmissionNote.__table__.c.submission_id.foreign_keys
