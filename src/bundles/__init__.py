# Injector/src/bundles/__init__.py
"""Bundle stores backing envFrom resolution."""
from .kubernetes import KubernetesBundleStore, load_core_api

__all__ = ["KubernetesBundleStore", "load_core_api"]
