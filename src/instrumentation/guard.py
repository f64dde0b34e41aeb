# Injector/src/instrumentation/guard.py
# @ai-rules:
# 1. [Constraint]: Read-only scans of the pod. No I/O.
# 2. [Gotcha]: The marker variable on the operator sidecar does not count as instrumented.
"""
Idempotency guard.

Detects pods that already carry injected artifacts so a second admission of
the same pod is a no-op. Linear scans only; no external calls.
"""
from __future__ import annotations

from ..models import Pod
from .config import DEFAULT_CONFIG, EngineConfig


def init_container_missing(pod: Pod, name: str) -> bool:
    """True when the pod has no init container with this name."""
    return all(init.name != name for init in pod.spec.init_containers)


def already_instrumented(pod: Pod, config: EngineConfig = DEFAULT_CONFIG) -> bool:
    """True when any runtime's init container or the injected marker variable is present."""
    for init in pod.spec.init_containers:
        if init.name in config.runtime_init_containers:
            return True

    for container in pod.spec.containers:
        # The operator's own sidecar sets the marker too
        if container.name == config.operator_sidecar_name:
            continue
        if any(env.name == config.marker_variable for env in container.env):
            return True
    return False
