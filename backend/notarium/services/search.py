"""
Notarium Backend: Relevance Search Engine
===========================================

What:  Free-text search over visible notes with a deterministic score.
How:   The query is lower-cased and split on whitespace. Each searchable
       field produces one boolean: does ANY token occur in it
       (case-insensitive substring)? A matching field adds
       `token_count × weight` to the score. Scoring, filtering, ordering
       and limiting all happen in one SQL statement.

Weights:
    title            10
    author name       8
    tags              6
    subject name      5
    description       4
    extracted text    2

Ordering: score desc, created_at desc, id desc. At most
`settings.search_result_limit` results.

Example:
    "biologi sel" has 2 tokens. A note whose title contains "sel" and
    whose tags contain "biologi" scores 2×10 + 2×6 = 32.
"""

import logging
from typing import List, NamedTuple, Optional

from sqlalchemy import Text, case, cast, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from notarium.config import settings
from notarium.models.note import Note
from notarium.models.subject import Subject
from notarium.models.user import User
from notarium.services.visibility import visibility_clause

logger = logging.getLogger(__name__)

FIELD_WEIGHTS = (
    (Note.title, 10),
    (User.display_name, 8),
    (cast(Note.tags, Text), 6),
    (Subject.name, 5),
    (Note.description, 4),
    (Note.extracted_text, 2),
)


class RankedNote(NamedTuple):
    note: Note
    score: int


def tokenize(query: Optional[str]) -> List[str]:
    return (query or "").lower().split()


def _any_token_in(column, tokens: List[str]):
    # autoescape: '%' and '_' in a token match literally
    return or_(*[column.icontains(token, autoescape=True) for token in tokens])


async def search(
    session: AsyncSession,
    query: Optional[str],
    viewer: Optional[User] = None,
    limit: Optional[int] = None,
) -> List[RankedNote]:
    """
    Rank visible notes against `query`.

    A blank query returns [] without touching the database.
    """
    tokens = tokenize(query)
    if not tokens:
        return []

    matches = [(_any_token_in(column, tokens), weight) for column, weight in FIELD_WEIGHTS]
    score = sum(
        case((matched, len(tokens) * weight), else_=0) for matched, weight in matches
    ).label("relevance_score")

    stmt = (
        select(Note, score)
        .outerjoin(User, Note.author_id == User.id)
        .outerjoin(Subject, Note.subject_id == Subject.id)
        .where(or_(*[matched for matched, _ in matches]), visibility_clause(viewer))
        .order_by(score.desc(), Note.created_at.desc(), Note.id.desc())
        .limit(limit or settings.search_result_limit)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    ranked = [RankedNote(note, int(value)) for note, value in result.all()]

    logger.debug("Search %r (%d token(s)) returned %d note(s)", query, len(tokens), len(ranked))
    return ranked
