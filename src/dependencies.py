# Injector/src/dependencies.py
"""FastAPI dependency injection for the instrumentation webhook."""
from __future__ import annotations

from typing import Optional

from .instrumentation.mutator import PodMutator
from .models import JavaSpec

# Global instances (initialized in main.py lifespan)
_mutator: Optional[PodMutator] = None
_java_spec: Optional[JavaSpec] = None


def set_mutator(mutator: PodMutator) -> None:
    """Set the global PodMutator instance."""
    global _mutator
    _mutator = mutator


def set_java_spec(spec: JavaSpec) -> None:
    """Set the Java instrumentation spec applied to annotated pods."""
    global _java_spec
    _java_spec = spec


async def get_mutator() -> PodMutator:
    """
    Get the PodMutator instance.

    FastAPI dependency.
    """
    if _mutator is None:
        raise RuntimeError("PodMutator not initialized. Check startup sequence.")
    return _mutator


async def get_java_spec() -> JavaSpec:
    """Get the Java instrumentation spec."""
    if _java_spec is None:
        raise RuntimeError("Java spec not initialized. Check startup sequence.")
    return _java_spec
