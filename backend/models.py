# backend/models.py
from datetime import datetime, timezone
from typing import Any, Dict
from sqlalchemy import Column, JSON
from sqlmodel import Field, SQLModel

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class StoredToken(SQLModel, table=True):
    email: str = Field(primary_key=True, max_length=320)
    token: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow)
