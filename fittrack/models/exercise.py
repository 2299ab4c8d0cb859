"""Exercise catalog model."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fittrack.models.base import BaseModel

if TYPE_CHECKING:
    from fittrack.models.user import User


class Exercise(BaseModel):
    """Catalog exercise. System seed rows have no author."""

    __tablename__ = "exercises"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(200), index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    muscle_group: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    difficulty: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    user: Mapped[Optional["User"]] = relationship("User", back_populates="exercises")

    def __repr__(self) -> str:
        return f"<Exercise(id={self.id}, name={self.name}, muscle_group={self.muscle_group})>"
