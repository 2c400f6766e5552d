"""Contact form intake: sanitise, rate limit, insert."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import bleach
import structlog

from src.config import settings
from src.errors import RateLimited, ValidationError
from src.repositories.submission import SubmissionStore
from src.schemas.submission import ContactSubmissionIn, NewSubmission, SubmissionRecord

logger = structlog.get_logger()

RATE_LIMIT_WINDOW = timedelta(hours=1)


def sanitize(value: Optional[str]) -> Optional[str]:
    """Strip markup from free text. Blank values become None."""
    if value is None:
        return None
    cleaned = bleach.clean(value.strip(), tags=[], strip=True).strip()
    return cleaned or None


def client_ip(headers) -> str:
    """Best-effort client address from proxy headers."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    return headers.get("x-real-ip") or "unknown"


def build_submission(
    data: ContactSubmissionIn, ip_address: str, user_agent: Optional[str]
) -> NewSubmission:
    return NewSubmission(
        first_name=sanitize(data.firstName) or "",
        last_name=sanitize(data.lastName) or "",
        email=str(data.email).strip().lower(),
        company=sanitize(data.company),
        role=sanitize(data.role),
        interest_area=sanitize(data.interestArea),
        goals=sanitize(data.goals),
        ip_address=ip_address,
        user_agent=(user_agent or "unknown")[:500],
    )


async def submit_contact(
    store: SubmissionStore,
    data: ContactSubmissionIn,
    ip_address: str,
    user_agent: Optional[str] = None,
    now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> SubmissionRecord:
    """Store one contact-form submission.

    Raises:
        RateLimited: the address already sent the hourly maximum.
        ValidationError: a required field is empty after sanitising.
    """
    limit = settings.contact_rate_limit_per_hour
    recent = await store.count_recent_from_ip(ip_address, now() - RATE_LIMIT_WINDOW)
    if recent >= limit:
        logger.warning("contact_rate_limited", ip_address=ip_address, recent=recent)
        raise RateLimited(
            f"Rate limit exceeded. Maximum {limit} submissions per hour allowed.",
            operation="submit_contact",
        )

    submission = build_submission(data, ip_address, user_agent)
    if not submission.first_name or not submission.last_name:
        raise ValidationError(
            "First name, last name, and email are required",
            operation="submit_contact",
        )

    record = await store.create(submission)
    logger.info("contact_submission_received", submission_id=record.id, ip_address=ip_address)
    return record
