"""Application package for the SIGEA academic-management backend.

This package exposes the service, repository and model modules used by
the FastAPI application. It is intentionally lightweight; individual
modules contain the concrete implementations and documentation. The
schedule-conflict rules live in `scheduling`.
"""
