# Injector/src/instrumentation/config.py
# @ai-rules:
# 1. [Constraint]: Frozen dataclasses only. Engine tables are passed in explicitly, never read as globals inside decisions.
# 2. [Pattern]: DEFAULT_CONFIG is the production table; tests build their own EngineConfig via dataclasses.replace().
"""Immutable engine configuration: reserved variable names, first-party endpoints, runtime names."""
from __future__ import annotations

from dataclasses import dataclass, field

INIT_CONTAINER_PREFIX = "opentelemetry-auto-instrumentation"
VOLUME_PREFIX = "opentelemetry-auto-instrumentation"

JAVA_INIT_CONTAINER_NAME = f"{INIT_CONTAINER_PREFIX}-java"
PYTHON_INIT_CONTAINER_NAME = f"{INIT_CONTAINER_PREFIX}-python"
DOTNET_INIT_CONTAINER_NAME = f"{INIT_CONTAINER_PREFIX}-dotnet"
NODEJS_INIT_CONTAINER_NAME = f"{INIT_CONTAINER_PREFIX}-nodejs"
APACHE_AGENT_INIT_CONTAINER_NAME = f"{INIT_CONTAINER_PREFIX}-apache-httpd-agent"
APACHE_AGENT_CLONE_CONTAINER_NAME = f"{INIT_CONTAINER_PREFIX}-apache-httpd-agent-clone"


@dataclass(frozen=True)
class ReservedNames:
    """Variable names the policy engine interprets."""
    enablement_flag: str = "OTEL_AWS_APPLICATION_SIGNALS_ENABLED"
    otlp_endpoint: str = "OTEL_EXPORTER_OTLP_ENDPOINT"
    traces_endpoint: str = "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT"
    metrics_endpoint: str = "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT"
    logs_endpoint: str = "OTEL_EXPORTER_OTLP_LOGS_ENDPOINT"
    traces_exporter: str = "OTEL_TRACES_EXPORTER"
    metrics_exporter: str = "OTEL_METRICS_EXPORTER"
    logs_exporter: str = "OTEL_LOGS_EXPORTER"
    sampler: str = "OTEL_TRACES_SAMPLER"
    sampler_arg: str = "OTEL_TRACES_SAMPLER_ARG"
    prefix: str = "OTEL_"

    @property
    def endpoint_roles(self) -> tuple[str, str, str, str]:
        """Generic, traces, metrics and logs endpoint variables, in that order."""
        return (self.otlp_endpoint, self.traces_endpoint, self.metrics_endpoint, self.logs_endpoint)


@dataclass(frozen=True)
class EngineConfig:
    """Everything the decision engine treats as a fixed table."""
    reserved: ReservedNames = field(default_factory=ReservedNames)
    # Hosts of the first-party collector service; matched exactly against the parsed authority
    first_party_hosts: frozenset[str] = frozenset({
        "cloudwatch-agent.amazon-cloudwatch",
        "cloudwatch-agent-windows-headless.amazon-cloudwatch.svc.cluster.local",
    })
    first_party_port: int = 4316
    # Init containers any runtime injector leaves behind
    runtime_init_containers: frozenset[str] = frozenset({
        JAVA_INIT_CONTAINER_NAME,
        PYTHON_INIT_CONTAINER_NAME,
        DOTNET_INIT_CONTAINER_NAME,
        NODEJS_INIT_CONTAINER_NAME,
        APACHE_AGENT_INIT_CONTAINER_NAME,
        APACHE_AGENT_CLONE_CONTAINER_NAME,
    })
    # Set by every injector on every instrumented container
    marker_variable: str = "OTEL_RESOURCE_ATTRIBUTES_NODE_NAME"
    # The operator's own collector sidecar also carries the marker; never counts as instrumented
    operator_sidecar_name: str = "otc-container"
    default_volume_size: str = "200Mi"
    # UID given to init containers when the pod demands non-root without naming a user
    init_container_fallback_uid: int = 1000


DEFAULT_CONFIG = EngineConfig()
