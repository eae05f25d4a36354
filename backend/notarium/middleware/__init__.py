"""
Notarium Backend: Middleware Package
======================================

Request → [Request ID] → [Access Log] → [CORS] → Route Handler

The request id is assigned first so the access log line and every log
line emitted while handling the request carry it.
"""
