from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Float, DateTime, ForeignKey, Uuid, func
from fitcomp.db import Base, JSONType


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    competition_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("competitions.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)

    activity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    unit: Mapped[str] = mapped_column(String(40), nullable=False)

    # Raw measurements as entered; only the one matching `unit` feeds scoring
    duration: Mapped[float] = mapped_column(Float, nullable=False, default=0)  # minutes
    distance: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    calories: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    sessions: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    reps: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    sets: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    steps: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    custom_value: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    pace: Mapped[float | None] = mapped_column(Float, nullable=True)

    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    raw_points: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    points: Mapped[float] = mapped_column(Float, nullable=False, default=0)  # final, capped
    capped_by: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    notes: Mapped[str | None] = mapped_column(Text(), nullable=True)

    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)  # user-chosen
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
