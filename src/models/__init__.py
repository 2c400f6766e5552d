"""SQLAlchemy ORM models."""

from src.models.base import Base
from src.models.submission import Submission, SubmissionNote

__all__ = [
    "Base",
    "Submission",
    "SubmissionNote",
]
