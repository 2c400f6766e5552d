"""Create the submission tables and optionally seed demo leads."""

import asyncio
import sys
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from src.config import settings
from src.models import Base, Submission, SubmissionNote


DEMO_SUBMISSIONS = [
    {
        "first_name": "Maya", "last_name": "Tremblay", "email": "maya@northwind.ca",
        "company": "Northwind Logistics", "role": "COO", "interest_area": "AI Strategy",
        "goals": "Automate dispatch planning", "status": "new", "tags": [],
    },
    {
        "first_name": "Ravi", "last_name": "Singh", "email": "ravi@maplebyte.ca",
        "company": "MapleByte", "role": "CTO", "interest_area": "Team Training",
        "goals": "Upskill engineers on LLM tooling", "status": "lead",
        "tags": ["Hot Lead", "Team Training"],
    },
    {
        "first_name": "Claire", "last_name": "Dubois", "email": "claire@prairiefoods.ca",
        "company": "Prairie Foods", "role": "Owner", "interest_area": "Implementation",
        "goals": None, "status": "closed", "tags": ["Proposal Sent"],
        "resurface_in_days": -3,
    },
]


async def init_db(seed_demo: bool = False):
    """Create tables; with ``--demo`` also insert a few example leads."""
    engine = create_async_engine(settings.database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created")

    if seed_demo:
        session_factory = async_sessionmaker(engine, class_=AsyncSession)
        now = datetime.now(timezone.utc)

        async with session_factory() as session:
            for data in DEMO_SUBMISSIONS:
                data = dict(data)
                resurface_in_days = data.pop("resurface_in_days", None)
                submission = Submission(
                    **data,
                    resurface_date=(
                        now + timedelta(days=resurface_in_days)
                        if resurface_in_days is not None else None
                    ),
                    ip_address="127.0.0.1",
                    user_agent="init_db",
                )
                session.add(submission)
                await session.flush()
                session.add(SubmissionNote(
                    submission_id=submission.id,
                    note_text=f"Imported demo lead {submission.first_name} {submission.last_name}",
                    note_type="general",
                    created_by="init_db",
                ))
                print(f"  + Submission: {submission.first_name} {submission.last_name}")

            await session.commit()

    await engine.dispose()
    print("\nDone!")


if __name__ == "__main__":
    asyncio.run(init_db(seed_demo="--demo" in sys.argv[1:]))
