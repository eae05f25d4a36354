"""
Notarium Backend: Visibility Evaluator
========================================

What:  Decides whether a viewer may read a note.
How:   Two forms of the same predicate. can_view() is a pure function over a
       loaded note; visibility_clause() is the SQL form used by list and
       search so filtering happens in the database. Both must agree.

Rule:
    A note is visible iff
      status is published, or has no recognised status (legacy row)
    AND
      visibility is not 'class'
      OR the viewer's class equals the author's class at creation time
      OR either class is missing/empty.

    An anonymous viewer has no class, so class-restricted notes are not
    hidden from it. Authors see their own drafts through list_my_notes(),
    not through this evaluator.
"""

from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from notarium.models.note import Note
from notarium.models.types import NoteStatus, Visibility
from notarium.models.user import User


def viewer_class(viewer: Optional[User]) -> Optional[str]:
    """The viewer's class, or None for anonymous viewers and blank classes."""
    if viewer is None or not viewer.class_name:
        return None
    return viewer.class_name


def can_view(viewer: Optional[User], note: Note) -> bool:
    if note.status is NoteStatus.DRAFT:
        return False
    if note.visibility is not Visibility.CLASS:
        return True

    klass = viewer_class(viewer)
    if klass is None or not note.author_class:
        return True
    return klass == note.author_class


def published_filter() -> ColumnElement[bool]:
    """SQL form of 'counts as published': status NULL, unknown or 'published'."""
    return or_(Note.status.is_(None), Note.status != NoteStatus.DRAFT)


def visibility_clause(viewer: Optional[User]) -> ColumnElement[bool]:
    """SQL form of can_view() for `viewer`."""
    klass = viewer_class(viewer)
    if klass is None:
        return published_filter()

    class_ok = or_(
        Note.visibility.is_(None),
        Note.visibility != Visibility.CLASS,
        Note.author_class.is_(None),
        Note.author_class == "",
        Note.author_class == klass,
    )
    return and_(published_filter(), class_ok)
