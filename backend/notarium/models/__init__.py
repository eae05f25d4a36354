# Importing the package registers every table with Base.metadata.
from notarium.models.engagement import AdminActivity, AdminNoteLike, NoteLike
from notarium.models.note import Note
from notarium.models.subject import Subject
from notarium.models.types import LenientEnum, NoteStatus, UserRole, Visibility
from notarium.models.user import User

__all__ = [
    "AdminActivity",
    "AdminNoteLike",
    "LenientEnum",
    "Note",
    "NoteLike",
    "NoteStatus",
    "Subject",
    "User",
    "UserRole",
    "Visibility",
]
