"""
Notarium Backend: Enumerations and Column Types
=================================================

What:  The enums that back lifecycle, visibility and role columns, plus the
       `LenientEnum` column type that stores them as plain strings.
How:   Values are written as their string value. On read, NULL, empty and
       unrecognized strings (rows written by older releases) come back as
       None, so state checks always compare enum members and legacy rows
       fall into the documented "no value" handling.
"""

import enum
from datetime import datetime, timezone
from typing import Optional, Type

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NoteStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Visibility(str, enum.Enum):
    EVERYONE = "everyone"
    CLASS = "class"


class UserRole(str, enum.Enum):
    STUDENT = "student"
    ADMIN = "admin"


class LenientEnum(TypeDecorator):
    """String column mapped to a `str` enum, tolerant of legacy values."""

    impl = String
    cache_ok = True

    def __init__(self, enum_cls: Type[enum.Enum], length: int = 20):
        super().__init__(length)
        self.enum_cls = enum_cls

    def process_bind_param(self, value, dialect) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, self.enum_cls):
            return value.value
        # Raw strings pass through so queries can match legacy values ('').
        return str(value)

    def process_result_value(self, value, dialect):
        if not value:
            return None
        try:
            return self.enum_cls(value)
        except ValueError:
            return None
