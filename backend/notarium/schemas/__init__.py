from notarium.schemas.common import (
    ErrorResponse,
    HealthResponse,
    LeaderboardEntry,
    SubjectResponse,
)
from notarium.schemas.note import (
    DeleteResponse,
    LikeToggleResponse,
    NoteCreateResponse,
    NoteResponse,
    NoteSubmission,
    NoteUpdate,
    PublishedBatchResponse,
    SearchResultItem,
)

__all__ = [
    "DeleteResponse",
    "ErrorResponse",
    "HealthResponse",
    "LeaderboardEntry",
    "LikeToggleResponse",
    "NoteCreateResponse",
    "NoteResponse",
    "NoteSubmission",
    "NoteUpdate",
    "PublishedBatchResponse",
    "SearchResultItem",
    "SubjectResponse",
]
