"""
Notarium Backend: API Routes Package
======================================

Route Inventory:
    - notes.py:     /api/notes...            create, read, edit, delete, engage
    - subjects.py:  /api/subjects, /api/leaderboard
    - admin.py:     /api/admin/...           scheduled publish, counter reconcile
    - health.py:    GET /health

Routes stay thin: read the request, call NoteService, shape the response.
"""
