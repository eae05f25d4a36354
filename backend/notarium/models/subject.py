"""
Notarium Backend: Subject Model
=================================

Fixed catalog of school subjects. `note_count` is a denormalized count of the
published notes filed under the subject; CounterMaintainer.reconcile()
recomputes it from the notes table when it drifts.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from notarium.database import Base
from notarium.models.types import utcnow


class Subject(Base):
    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    icon: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    note_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<Subject(id={self.id}, name='{self.name}', note_count={self.note_count})>"
