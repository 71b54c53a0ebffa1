"""
SubDesk Backend — Middleware Package
======================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [Security Headers]
            → [GZip] → [CORS] → Route Handler

    Rate limiting rejects abusive clients before anything else runs. The
    request ID is bound before the access log line is written, so every
    log entry of a request carries the same ID. Security headers are
    stamped on every response, including errors produced further in.
"""
