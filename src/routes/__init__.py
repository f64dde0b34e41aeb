# Injector/src/routes/__init__.py
"""API routes for the instrumentation webhook."""
from .mutate import router as mutate_router

__all__ = [
    "mutate_router",
]
