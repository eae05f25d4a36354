"""
Notarium Backend: User Model
==============================

Users are created by the authentication layer (outside this package). The
engine only reads identity, class and role, and maintains the three running
totals below.

Counters:
    notes_uploaded        published notes authored
    total_likes           sum of `likes` across the user's live notes
    total_admin_upvotes   sum of `admin_upvotes` across the user's live notes
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from notarium.database import Base
from notarium.models.types import LenientEnum, UserRole, utcnow


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True, comment="Identity from the auth provider"
    )
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # `class` is a Python keyword; the attribute is class_name.
    class_name: Mapped[Optional[str]] = mapped_column("class", String(20), nullable=True)
    role: Mapped[Optional[UserRole]] = mapped_column(
        LenientEnum(UserRole),
        nullable=False,
        default=UserRole.STUDENT,
        server_default=text("'student'"),
    )

    notes_uploaded: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    total_likes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    total_admin_upvotes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name='{self.display_name}', class='{self.class_name}')>"
