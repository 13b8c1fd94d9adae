"""
LogoForge Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Rate Limit: rejects over-limit clients before any work is done
    2. Request ID: sets the correlation id used by every log line
    3. Logging:    one access line per request with status and duration
    4. CORS:       FastAPI's CORSMiddleware (preflight handling)
"""
