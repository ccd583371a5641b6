from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuestionSchema(SQLModel, table=True):
    """One saved snapshot of the canonical question list; the newest wins."""

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)
    payload_json: str


class Profile(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    # respondent identity used in survey links
    uuid: Optional[str] = Field(default=None, index=True)
    name: Optional[str] = None
    # full record as posted
    payload_json: str
