"""Body progress model."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fittrack.models.base import BaseModel

if TYPE_CHECKING:
    from fittrack.models.user import User


class Progress(BaseModel):
    """Dated snapshot of body metrics.

    Several entries may share a date; the newest by date is "current".
    """

    __tablename__ = "progress"
    __table_args__ = (Index("ix_progress_user_date", "user_id", "date"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # kg
    body_fat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # %
    chest: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # cm
    waist: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    hips: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    arms: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    thighs: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="progress_entries")

    def __repr__(self) -> str:
        return f"<Progress(user_id={self.user_id}, date={self.date}, weight={self.weight})>"
