# PURPOSE: define how task and analytics rows look in the database.

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base
from .domain import now_utc


class TaskDB(Base):
    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class TaskAnalyticsDB(Base):
    """One aggregate row per owner; created lazily by the analytics worker."""

    __tablename__ = "task_analytics"

    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    tasks_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tasks_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)


# Helpful indexes for owner-scoped filtering/sorting
Index("ix_tasks_owner_id", TaskDB.owner_id)
Index("ix_tasks_status", TaskDB.status)
Index("ix_tasks_created_at", TaskDB.created_at)
