# Injector/src/instrumentation/mutator.py
# @ai-rules:
# 1. [Constraint]: mutate() is the ONLY entry point that changes pods. Guard check and mutation happen in one call.
# 2. [Pattern]: Works on a deep copy; the caller's Pod is never touched. Unchanged pod -> equal copy returned.
# 3. [Pattern]: One BundleCache per mutate() call, shared by all containers of the pod.
# 4. [Gotcha]: DuplicateTargetError / InstrumentationConfigError propagate (admission rejection); per-container
#    InvalidContainerEnvError is logged and that container is left alone.
"""
Pod mutation pipeline.

Validates the instrumentation assignment, short-circuits pods that already
carry injected artifacts, resolves each target container's effective
environment and dispatches to the runtime injector.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from ..models import EnvVar, Instrumentation, JavaSpec, Pod
from .config import DEFAULT_CONFIG, EngineConfig
from .envview import BundleCache, BundleStore, resolve_effective_env
from .errors import InvalidContainerEnvError
from .guard import already_instrumented
from .javaagent import inject_javaagent
from .policy import InjectionPolicy
from .validation import split_targets, validate_target_assignment

logger = logging.getLogger(__name__)

# (spec, pod, container index, effective env, policy) -> instrumented?
RuntimeInjector = Callable[[JavaSpec, Pod, int, Sequence[EnvVar], InjectionPolicy], bool]

RUNTIME_INJECTORS: dict[str, RuntimeInjector] = {
    "java": inject_javaagent,
}


class PodMutator:
    """
    Applies instrumentations to pods.

    Usage:
        mutator = PodMutator(store)
        mutated = mutator.mutate(pod, [Instrumentation(runtime="java", spec=java_spec)])
    """

    def __init__(
        self,
        store: BundleStore,
        config: EngineConfig = DEFAULT_CONFIG,
        injectors: Optional[dict[str, RuntimeInjector]] = None,
    ):
        self.store = store
        self.config = config
        self.policy = InjectionPolicy(config)
        self.injectors = dict(RUNTIME_INJECTORS if injectors is None else injectors)

    def _target_indexes(self, pod: Pod, targets: str) -> list[int]:
        """Indexes of containers a runtime applies to; empty targets = every non-sidecar container."""
        containers = pod.spec.containers
        names = split_targets(targets)
        if not names:
            return [
                i for i, c in enumerate(containers)
                if c.name != self.config.operator_sidecar_name
            ]

        by_name = {c.name: i for i, c in reversed(list(enumerate(containers)))}
        indexes = []
        for name in names:
            if name not in by_name:
                logger.warning(f"Target container {name} not found in pod {pod.display_name}")
                continue
            indexes.append(by_name[name])
        return indexes

    def mutate(
        self,
        pod: Pod,
        instrumentations: Sequence[Instrumentation],
        namespace: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> Pod:
        """
        Return a mutated copy of the pod.

        Args:
            pod: Admitted pod (not modified)
            instrumentations: Runtimes to apply
            namespace: Namespace for bundle lookups; defaults to the pod's
            deadline: Absolute time.monotonic() deadline for bundle fetches

        Raises:
            DuplicateTargetError: A container is targeted twice
            InstrumentationConfigError: Targets cannot be assigned unambiguously
        """
        mutated = pod.model_copy(deep=True)
        if not instrumentations:
            return mutated

        validate_target_assignment(instrumentations)

        if already_instrumented(mutated, self.config):
            logger.info(f"Pod {mutated.display_name} already instrumented; skipping")
            return mutated

        ns = namespace or mutated.metadata.namespace or "default"
        cache = BundleCache()

        for inst in instrumentations:
            injector = self.injectors.get(inst.runtime)
            if injector is None:
                logger.warning(f"No injector registered for runtime {inst.runtime}; skipping")
                continue

            for index in self._target_indexes(mutated, inst.spec.containers):
                container = mutated.spec.containers[index]
                effective_env = resolve_effective_env(container, ns, cache, self.store, deadline)
                try:
                    injector(inst.spec, mutated, index, effective_env, self.policy)
                except InvalidContainerEnvError as e:
                    logger.error(f"Skipping {inst.runtime} injection into {container.name}: {e}")

        return mutated
