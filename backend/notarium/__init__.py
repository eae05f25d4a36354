"""
Notarium Backend: Note Ingestion & Publication Engine
=======================================================

Layers:

    ┌─────────────────────────────────────┐
    │     Routes (thin FastAPI surface)   │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (chunking, publication,  │  ← business rules
    │   visibility, search, counters)     │
    ├─────────────────────────────────────┤
    │     Models & Schemas (Data)         │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │     Database (Persistence)          │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
