"""Public contact form route."""

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.landing.intake import client_ip, submit_contact
from src.repositories.submission import SubmissionRepository, SubmissionStore
from src.schemas.submission import ContactSubmissionIn

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["contact"])


def get_store(db: AsyncSession = Depends(get_db)) -> SubmissionStore:
    return SubmissionRepository(db)


@router.post("/contact")
async def create_contact_submission(
    data: ContactSubmissionIn,
    request: Request,
    store: SubmissionStore = Depends(get_store),
):
    """Save a contact-form submission as a new lead."""
    record = await submit_contact(
        store,
        data,
        ip_address=client_ip(request.headers),
        user_agent=request.headers.get("user-agent"),
    )
    return {"message": "Submission received successfully", "id": record.id}
