"""
Notarium Backend: Services Layer
==================================

Service Inventory:
    - counters.py:     grouped mutations and every counter delta
    - visibility.py:   who may read a note (Python and SQL forms)
    - chunking.py:     submission → chain of continuation notes
    - publication.py:  draft → published state machine, scheduled sweep
    - search.py:       weighted multi-field relevance search
    - audit.py:        best-effort admin activity log
    - note_service.py: orchestrator exposing the operations to routes

Dependency order (leaves first):
    visibility → counters → chunking, publication → note_service
"""
