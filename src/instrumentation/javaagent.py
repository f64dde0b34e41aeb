# Injector/src/instrumentation/javaagent.py
# @ai-rules:
# 1. [Constraint]: Mutates the pod passed in. Callers (PodMutator) hand it a private deep copy.
# 2. [Pattern]: Variable decisions are evaluated against the USER's effective env, never against values injected in this pass.
# 3. [Gotcha]: Volume + init container are added once per pod (first processed container); mounts once per container.
# 4. [Gotcha]: Init containers do not inherit container-level securityContext; see init_container_security_context().
"""
Java agent injection.

Grafts the OpenTelemetry Java agent onto one container: proposed OTEL_*
variables, `-javaagent` on JAVA_TOOL_OPTIONS, a shared emptyDir volume and an
init container that copies the agent jar into it.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..models import Container, EnvVar, JavaSpec, Pod, SecurityContext, Volume, VolumeMount
from .config import DEFAULT_CONFIG, JAVA_INIT_CONTAINER_NAME, VOLUME_PREFIX, EngineConfig
from .errors import InvalidContainerEnvError
from .guard import init_container_missing
from .policy import InjectionPolicy, find_env

logger = logging.getLogger(__name__)

ENV_JAVA_TOOL_OPTIONS = "JAVA_TOOL_OPTIONS"
JAVA_JVM_ARGUMENT = " -javaagent:/otel-auto-instrumentation-java/javaagent.jar"
JAVA_VOLUME_NAME = f"{VOLUME_PREFIX}-java"
JAVA_MOUNT_PATH = "/otel-auto-instrumentation-java"
JAVA_MOUNT_PATH_WINDOWS = "\\otel-auto-instrumentation-java"

JAVA_COMMAND_LINUX = ["cp", "/javaagent.jar", f"{JAVA_MOUNT_PATH}/javaagent.jar"]
JAVA_COMMAND_WINDOWS = ["CMD", "/c", "copy", "javaagent.jar", JAVA_MOUNT_PATH_WINDOWS]

OS_NODE_SELECTOR = "kubernetes.io/os"


def is_windows_pod(pod: Pod) -> bool:
    return (pod.spec.node_selector or {}).get(OS_NODE_SELECTOR) == "windows"


def volume_size(quantity: Optional[str], config: EngineConfig = DEFAULT_CONFIG) -> str:
    return quantity or config.default_volume_size


def init_container_security_context(
    pod: Pod, config: EngineConfig = DEFAULT_CONFIG
) -> Optional[SecurityContext]:
    """
    Security context for an injected init container.

    Only needed when the pod demands non-root without naming a user; a
    pod-level runAsUser is inherited and no constraint leaves the image default.
    """
    pod_sc = pod.spec.security_context
    if pod_sc is None or pod_sc.run_as_user is not None:
        return None
    if pod_sc.run_as_non_root:
        return SecurityContext(run_as_user=config.init_container_fallback_uid, run_as_non_root=True)
    return None


def validate_container_env(container: Container, name: str) -> None:
    """Reject a variable we must append to when it is sourced via valueFrom."""
    env = find_env(container.env, name)
    if env is not None and env.value_from is not None:
        raise InvalidContainerEnvError(container.name, name)


def inject_javaagent(
    spec: JavaSpec,
    pod: Pod,
    index: int,
    effective_env: Sequence[EnvVar],
    policy: InjectionPolicy,
) -> bool:
    """
    Inject the Java agent into pod.spec.containers[index].

    Args:
        spec: Java instrumentation settings
        pod: Pod to mutate in place
        index: Target container index
        effective_env: Resolved env view of the container (env + envFrom)
        policy: Decision engine

    Returns True if the container was instrumented, False if the policy
    declined.

    Raises:
        InvalidContainerEnvError: JAVA_TOOL_OPTIONS comes from valueFrom
    """
    config = policy.config
    container = pod.spec.containers[index]
    validate_container_env(container, ENV_JAVA_TOOL_OPTIONS)

    if not policy.should_install_agent(effective_env, pod.spec.security_context, container.security_context):
        logger.info(f"Java agent injection skipped for {pod.display_name}/{container.name}")
        return False

    injected: set[str] = set()
    for env in spec.env:
        if env.name in injected:
            continue
        if policy.should_inject_variable(effective_env, env.name, env.value):
            container.env.append(env.model_copy(deep=True))
            injected.add(env.name)
            logger.debug(f"Injected {env.name} into {container.name}")
        else:
            logger.debug(f"Skipped {env.name} for {container.name}: already set or overridden by user config")

    java_opts = find_env(container.env, ENV_JAVA_TOOL_OPTIONS)
    if java_opts is None:
        # Keep options the user imported via envFrom; the direct variable shadows them
        inherited = find_env(effective_env, ENV_JAVA_TOOL_OPTIONS)
        base = (inherited.value or "") if inherited is not None else ""
        container.env.append(EnvVar(name=ENV_JAVA_TOOL_OPTIONS, value=base + JAVA_JVM_ARGUMENT))
    else:
        java_opts.value = (java_opts.value or "") + JAVA_JVM_ARGUMENT

    if find_env(container.env, config.marker_variable) is None:
        container.env.append(EnvVar(
            name=config.marker_variable,
            value_from={"fieldRef": {"fieldPath": "spec.nodeName"}},
        ))

    container.volume_mounts.append(VolumeMount(name=JAVA_VOLUME_NAME, mount_path=JAVA_MOUNT_PATH))

    if init_container_missing(pod, JAVA_INIT_CONTAINER_NAME):
        pod.spec.volumes.append(Volume(
            name=JAVA_VOLUME_NAME,
            empty_dir={"sizeLimit": volume_size(spec.volume_size_limit, config)},
        ))
        pod.spec.init_containers.append(Container(
            name=JAVA_INIT_CONTAINER_NAME,
            image=spec.image,
            command=list(JAVA_COMMAND_WINDOWS if is_windows_pod(pod) else JAVA_COMMAND_LINUX),
            resources=spec.resources,
            volume_mounts=[VolumeMount(name=JAVA_VOLUME_NAME, mount_path=JAVA_MOUNT_PATH)],
            security_context=init_container_security_context(pod, config),
        ))

    logger.info(
        f"Java agent injected into {pod.display_name}/{container.name} "
        f"({len(injected)} variables added)"
    )
    return True
