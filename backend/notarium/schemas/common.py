"""
Notarium Backend: Shared Schemas
==================================

Subject catalog, leaderboard, health and error envelopes.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class SubjectResponse(BaseModel):
    id: int
    name: str
    icon: str
    note_count: int = Field(description="Published notes filed under the subject")

    model_config = {"from_attributes": True}


class LeaderboardEntry(BaseModel):
    id: int
    display_name: Optional[str] = None
    class_name: Optional[str] = None
    notes_uploaded: int
    total_likes: int
    total_admin_upvotes: int
    score: int

    model_config = {"from_attributes": True}


class ErrorResponse(BaseModel):
    """
    Body of every error response, produced by the handlers in main.py.

    Example:
        {
            "error": "OversizeError",
            "message": "Note data is too large. Please use smaller images.",
            "details": {"size": 1200000, "max_size": 900000, "part_number": 2,
                        "created_note_ids": [41]},
            "request_id": "c0a8..."
        }
    """

    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = Field(description="'healthy' or 'unhealthy'")
    database: str = Field(description="'connected' or 'disconnected'")
    version: str
