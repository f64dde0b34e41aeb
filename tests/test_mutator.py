# Injector/tests/test_mutator.py
# @ai-rules:
# 1. [Constraint]: No real cluster. Bundles served by StubBundleStore.
# 2. [Pattern]: Assertions read the mutated pod through _env_of() / names, never the caller's pod.
# 3. [Pattern]: Idempotence checked by mutating the mutator's own output a second time.
"""Tests for Java agent injection and the pod mutation pipeline."""
from __future__ import annotations

from typing import Optional

import pytest

from src.instrumentation.config import JAVA_INIT_CONTAINER_NAME
from src.instrumentation.errors import BundleNotFoundError, DuplicateTargetError, InstrumentationConfigError
from src.instrumentation.javaagent import (
    JAVA_COMMAND_WINDOWS,
    JAVA_JVM_ARGUMENT,
    JAVA_VOLUME_NAME,
    init_container_security_context,
    volume_size,
)
from src.instrumentation.mutator import PodMutator
from src.models import BundleKind, EnvVar, Instrumentation, JavaSpec, Pod
from src.specs import default_java_spec

THIRD_PARTY = "https://thirdparty/v1"


class StubBundleStore:
    def __init__(self, bundles=None):
        self.bundles: dict[tuple[BundleKind, str], dict[str, str]] = bundles or {}
        self.calls: list[tuple[BundleKind, str]] = []

    def get(self, kind, namespace, name, timeout=None):
        self.calls.append((kind, name))
        if (kind, name) not in self.bundles:
            raise BundleNotFoundError(kind.value, namespace, name, "not found")
        return dict(self.bundles[(kind, name)])


def _make_pod(
    containers: Optional[list[dict]] = None,
    security_context: Optional[dict] = None,
    node_selector: Optional[dict] = None,
) -> Pod:
    spec: dict = {"containers": containers or [{"name": "app", "image": "shop:1"}]}
    if security_context is not None:
        spec["securityContext"] = security_context
    if node_selector is not None:
        spec["nodeSelector"] = node_selector
    return Pod.model_validate({"metadata": {"name": "web-0", "namespace": "shop"}, "spec": spec})


def _java(containers: str = "", **kwargs) -> list[Instrumentation]:
    spec = default_java_spec().model_copy(update={"containers": containers, **kwargs})
    return [Instrumentation(runtime="java", spec=spec)]


def _env_of(pod: Pod, container: str = "app") -> dict[str, EnvVar]:
    c = next(c for c in pod.spec.containers if c.name == container)
    # First occurrence, matching how the runtime resolves names
    result: dict[str, EnvVar] = {}
    for env in c.env:
        result.setdefault(env.name, env)
    return result


@pytest.fixture
def store() -> StubBundleStore:
    return StubBundleStore()


@pytest.fixture
def mutator(store) -> PodMutator:
    return PodMutator(store)


class TestJavaInjection:
    def test_plain_pod_gets_agent(self, mutator):
        pod = _make_pod()
        mutated = mutator.mutate(pod, _java())

        env = _env_of(mutated)
        assert env["JAVA_TOOL_OPTIONS"].value == JAVA_JVM_ARGUMENT
        assert env["OTEL_METRICS_EXPORTER"].value == "none"
        assert env["OTEL_LOGS_EXPORTER"].value == "none"
        assert env["OTEL_TRACES_SAMPLER"].value == "xray"
        assert env["OTEL_RESOURCE_ATTRIBUTES_NODE_NAME"].value_from == {"fieldRef": {"fieldPath": "spec.nodeName"}}

        assert [i.name for i in mutated.spec.init_containers] == [JAVA_INIT_CONTAINER_NAME]
        init = mutated.spec.init_containers[0]
        assert init.image == default_java_spec().image
        assert init.command[0] == "cp"
        assert init.security_context is None
        assert [v.name for v in mutated.spec.volumes] == [JAVA_VOLUME_NAME]
        assert mutated.spec.volumes[0].empty_dir == {"sizeLimit": "200Mi"}
        assert [m.name for m in mutated.spec.containers[0].volume_mounts] == [JAVA_VOLUME_NAME]

    def test_caller_pod_untouched(self, mutator):
        pod = _make_pod()
        before = pod.model_dump()
        mutator.mutate(pod, _java())
        assert pod.model_dump() == before

    def test_existing_java_tool_options_extended(self, mutator):
        pod = _make_pod([{"name": "app", "env": [{"name": "JAVA_TOOL_OPTIONS", "value": "-Xmx512m"}]}])
        env = _env_of(mutator.mutate(pod, _java()))
        assert env["JAVA_TOOL_OPTIONS"].value == "-Xmx512m" + JAVA_JVM_ARGUMENT

    def test_java_tool_options_from_bundle_kept(self, store, mutator):
        store.bundles[(BundleKind.CONFIGMAP, "jvm")] = {"JAVA_TOOL_OPTIONS": "-Xss1m"}
        pod = _make_pod([{"name": "app", "envFrom": [{"configMapRef": {"name": "jvm"}}]}])
        env = _env_of(mutator.mutate(pod, _java()))
        assert env["JAVA_TOOL_OPTIONS"].value == "-Xss1m" + JAVA_JVM_ARGUMENT

    def test_java_tool_options_value_from_skips_container(self, mutator, caplog):
        pod = _make_pod([{
            "name": "app",
            "env": [{"name": "JAVA_TOOL_OPTIONS", "valueFrom": {"configMapKeyRef": {"name": "c", "key": "k"}}}],
        }])
        with caplog.at_level("ERROR"):
            mutated = mutator.mutate(pod, _java())
        assert mutated == pod
        assert "valueFrom" in caplog.text

    def test_user_values_never_overridden(self, mutator):
        pod = _make_pod([{"name": "app", "env": [
            {"name": "OTEL_TRACES_SAMPLER", "value": "always_on"},
            {"name": "OTEL_EXPORTER_OTLP_PROTOCOL", "value": "grpc"},
        ]}])
        container = mutator.mutate(pod, _java()).spec.containers[0]
        sampler = [e.value for e in container.env if e.name == "OTEL_TRACES_SAMPLER"]
        protocol = [e.value for e in container.env if e.name == "OTEL_EXPORTER_OTLP_PROTOCOL"]
        assert sampler == ["always_on"]
        assert protocol == ["grpc"]

    def test_user_metrics_endpoint_keeps_metrics_exporter(self, mutator):
        pod = _make_pod([{"name": "app", "env": [
            {"name": "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT", "value": "http://cloudwatch-agent.amazon-cloudwatch:4316/v1/metrics"},
        ]}])
        env = _env_of(mutator.mutate(pod, _java()))
        assert "OTEL_METRICS_EXPORTER" not in env
        assert env["OTEL_LOGS_EXPORTER"].value == "none"

    def test_empty_traces_endpoint_not_half_overridden(self, mutator):
        pod = _make_pod([{"name": "app", "env": [
            {"name": "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "value": ""},
        ]}])
        container = mutator.mutate(pod, _java()).spec.containers[0]
        names = [e.name for e in container.env]
        assert names.count("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") == 1
        assert container.env[0].value == ""
        assert "OTEL_TRACES_SAMPLER" not in names
        assert "OTEL_TRACES_SAMPLER_ARG" not in names
        assert "JAVA_TOOL_OPTIONS" in names

    def test_enabled_with_third_party_otlp(self, mutator):
        pod = _make_pod([{"name": "app", "env": [
            {"name": "OTEL_AWS_APPLICATION_SIGNALS_ENABLED", "value": "true"},
            {"name": "OTEL_EXPORTER_OTLP_ENDPOINT", "value": THIRD_PARTY},
        ]}])
        env = _env_of(mutator.mutate(pod, _java()))
        assert "JAVA_TOOL_OPTIONS" in env
        for name in ("OTEL_METRICS_EXPORTER", "OTEL_LOGS_EXPORTER", "OTEL_TRACES_SAMPLER",
                     "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT"):
            assert name not in env

    def test_third_party_bundle_endpoint_blocks_install(self, store, mutator):
        store.bundles[(BundleKind.SECRET, "otel")] = {"OTEL_EXPORTER_OTLP_ENDPOINT": THIRD_PARTY}
        pod = _make_pod([{"name": "app", "envFrom": [{"secretRef": {"name": "otel"}}]}])
        assert mutator.mutate(pod, _java()) == pod

    def test_non_root_pod_without_uid_left_alone(self, mutator):
        pod = _make_pod(
            [{"name": "app", "securityContext": {"runAsUser": 1001}}],
            security_context={"runAsNonRoot": True},
        )
        assert mutator.mutate(pod, _java()) == pod

    def test_windows_pod_uses_windows_command(self, mutator):
        pod = _make_pod(node_selector={"kubernetes.io/os": "windows"})
        init = mutator.mutate(pod, _java()).spec.init_containers[0]
        assert init.command == JAVA_COMMAND_WINDOWS

    def test_volume_size_from_spec(self, mutator):
        mutated = mutator.mutate(_make_pod(), _java(volume_size_limit="1Gi"))
        assert mutated.spec.volumes[0].empty_dir == {"sizeLimit": "1Gi"}


class TestHelpers:
    def test_volume_size_default(self):
        assert volume_size(None) == "200Mi"
        assert volume_size("50Mi") == "50Mi"

    def test_init_security_context(self):
        assert init_container_security_context(_make_pod()) is None
        assert init_container_security_context(_make_pod(security_context={"runAsUser": 10})) is None
        sc = init_container_security_context(_make_pod(security_context={"runAsNonRoot": True}))
        assert sc.run_as_user == 1000 and sc.run_as_non_root is True


class TestTargets:
    def test_all_containers_except_sidecar(self, mutator):
        pod = _make_pod([{"name": "api"}, {"name": "worker"}, {"name": "otc-container"}])
        mutated = mutator.mutate(pod, _java())
        assert "JAVA_TOOL_OPTIONS" in _env_of(mutated, "api")
        assert "JAVA_TOOL_OPTIONS" in _env_of(mutated, "worker")
        assert "JAVA_TOOL_OPTIONS" not in _env_of(mutated, "otc-container")
        # Shared volume and init container added once
        assert len(mutated.spec.init_containers) == 1
        assert len(mutated.spec.volumes) == 1

    def test_named_targets_only(self, mutator):
        pod = _make_pod([{"name": "api"}, {"name": "worker"}])
        mutated = mutator.mutate(pod, _java("worker,missing"))
        assert "JAVA_TOOL_OPTIONS" not in _env_of(mutated, "api")
        assert "JAVA_TOOL_OPTIONS" in _env_of(mutated, "worker")

    def test_duplicate_targets_rejected(self, mutator):
        spec = default_java_spec()
        insts = [
            Instrumentation(runtime="java", spec=spec.model_copy(update={"containers": "a,b"})),
            Instrumentation(runtime="python", spec=spec.model_copy(update={"containers": "b,c"})),
        ]
        with pytest.raises(DuplicateTargetError) as exc:
            mutator.mutate(_make_pod(), insts)
        assert exc.value.names == ["b"]

    def test_ambiguous_targets_rejected(self, mutator):
        spec = default_java_spec()
        insts = [
            Instrumentation(runtime="java", spec=spec),
            Instrumentation(runtime="python", spec=spec.model_copy(update={"containers": "app"})),
        ]
        with pytest.raises(InstrumentationConfigError):
            mutator.mutate(_make_pod(), insts)

    def test_unknown_runtime_skipped(self, mutator):
        spec = default_java_spec()
        pod = _make_pod()
        assert mutator.mutate(pod, [Instrumentation(runtime="go", spec=spec)]) == pod

    def test_no_instrumentations(self, mutator):
        pod = _make_pod()
        assert mutator.mutate(pod, []) == pod


class TestIdempotence:
    def test_second_pass_is_noop(self, mutator):
        once = mutator.mutate(_make_pod(), _java())
        twice = mutator.mutate(once, _java())
        assert twice == once
        assert twice.model_dump() == once.model_dump()

    def test_marker_only_pod_is_noop(self, mutator):
        pod = _make_pod([{"name": "app", "env": [
            {"name": "OTEL_RESOURCE_ATTRIBUTES_NODE_NAME", "value": "node-1"},
        ]}])
        assert mutator.mutate(pod, _java()) == pod


class TestBundleCacheScope:
    def test_shared_bundle_fetched_once_per_pod(self, store, mutator):
        store.bundles[(BundleKind.CONFIGMAP, "common")] = {"APP_MODE": "prod"}
        pod = _make_pod([
            {"name": "api", "envFrom": [{"configMapRef": {"name": "common"}}]},
            {"name": "worker", "envFrom": [{"configMapRef": {"name": "common"}}]},
        ])
        mutator.mutate(pod, _java())
        assert store.calls == [(BundleKind.CONFIGMAP, "common")]

    def test_cache_not_shared_across_passes(self, store, mutator):
        store.bundles[(BundleKind.CONFIGMAP, "common")] = {"APP_MODE": "prod"}
        pod = _make_pod([{"name": "api", "envFrom": [{"configMapRef": {"name": "common"}}]}])
        mutator.mutate(pod, _java())
        mutator.mutate(pod, _java())
        assert len(store.calls) == 2
