# Injector/src/instrumentation/errors.py
"""Errors raised by the injection engine and its collaborators."""
from __future__ import annotations

from typing import Iterable


class InjectionError(Exception):
    """Base class for instrumentation injection failures."""
    pass


class DuplicateTargetError(InjectionError):
    """The same container is targeted by more than one instrumentation."""

    def __init__(self, names: Iterable[str]):
        self.names = sorted(names)
        super().__init__(f"duplicated container names detected: {self.names}")


class InstrumentationConfigError(InjectionError):
    """Instrumentations on a pod cannot be assigned to containers unambiguously."""
    pass


class InvalidContainerEnvError(InjectionError):
    """A container's environment cannot be extended safely."""

    def __init__(self, container: str, name: str):
        self.container = container
        self.name = name
        super().__init__(
            f"the container '{container}' defines {name} via valueFrom; it cannot be extended"
        )


class BundleFetchError(InjectionError):
    """A ConfigMap/Secret referenced via envFrom could not be fetched."""

    def __init__(self, kind: str, namespace: str, name: str, reason: str = ""):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.reason = reason
        message = f"failed to fetch {kind} {namespace}/{name}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class BundleNotFoundError(BundleFetchError):
    """The referenced bundle does not exist."""
    pass
