# Injector/src/instrumentation/__init__.py
"""
Instrumentation decision engine.

Decides whether and how an observability agent is grafted onto a pod:
idempotency guard, install/signal/variable policy, effective env resolution
and target validation, plus the per-runtime injectors that consume them.
"""
from .config import DEFAULT_CONFIG, EngineConfig, ReservedNames
from .endpoint import is_first_party_endpoint
from .envview import BundleCache, BundleStore, resolve_effective_env
from .errors import (
    BundleFetchError,
    BundleNotFoundError,
    DuplicateTargetError,
    InjectionError,
    InstrumentationConfigError,
    InvalidContainerEnvError,
)
from .guard import already_instrumented, init_container_missing
from .mutator import PodMutator
from .policy import InjectionPolicy
from .validation import validate_no_duplicate_targets, validate_target_assignment

__all__ = [
    "DEFAULT_CONFIG",
    "EngineConfig",
    "ReservedNames",
    "is_first_party_endpoint",
    "BundleCache",
    "BundleStore",
    "resolve_effective_env",
    "BundleFetchError",
    "BundleNotFoundError",
    "DuplicateTargetError",
    "InjectionError",
    "InstrumentationConfigError",
    "InvalidContainerEnvError",
    "already_instrumented",
    "init_container_missing",
    "PodMutator",
    "InjectionPolicy",
    "validate_no_duplicate_targets",
    "validate_target_assignment",
]
