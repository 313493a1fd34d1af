import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.dialects import postgresql

# TEXT[] / JSONB on PostgreSQL, plain JSON on other backends (SQLite in tests)
FieldsType = JSON().with_variant(postgresql.ARRAY(String), "postgresql")
DetailType = JSON().with_variant(postgresql.JSONB(), "postgresql")


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Reservation(SQLModel, table=True):
    __tablename__ = "reservations"
    # Never hand a deleted reservation's id to a new one (SQLite reuses max ids otherwise)
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    date: datetime.date = Field(index=True)
    start: str  # "HH:MM"
    end: str  # "HH:MM"
    fields: List[str] = Field(sa_column=Column(FieldsType, nullable=False))
    group: str

    def snapshot(self) -> Dict[str, Any]:
        """Detached, JSON-ready copy of the row for the audit trail."""
        return self.model_dump(mode="json")


class AuditEntry(SQLModel, table=True):
    __tablename__ = "audit_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    time: datetime.datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    action: str
    detail: Dict[str, Any] = Field(sa_column=Column(DetailType, nullable=False))
