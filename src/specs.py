# Injector/src/specs.py
# @ai-rules:
# 1. [Pattern]: Built-in Java spec from env vars; INSTRUMENTATION_CONFIG_PATH (YAML, `java:` section) overrides field by field.
# 2. [Gotcha]: Default env order matters: proposed variables are injected in list order.
"""Instrumentation spec loading (env vars + optional YAML file)."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from .models import EnvVar, JavaSpec

logger = logging.getLogger(__name__)

JAVA_AGENT_IMAGE = os.getenv(
    "JAVA_AGENT_IMAGE",
    "public.ecr.aws/aws-observability/adot-autoinstrumentation-java:v2.11.0",
)
JAVA_AGENT_VOLUME_SIZE = os.getenv("JAVA_AGENT_VOLUME_SIZE", "")
INSTRUMENTATION_CONFIG_PATH = os.getenv("INSTRUMENTATION_CONFIG_PATH", "")

FIRST_PARTY_COLLECTOR = "http://cloudwatch-agent.amazon-cloudwatch"

DEFAULT_JAVA_ENV: list[tuple[str, str]] = [
    ("OTEL_AWS_APPLICATION_SIGNALS_ENABLED", "true"),
    ("OTEL_TRACES_SAMPLER_ARG", f"endpoint={FIRST_PARTY_COLLECTOR}:2000"),
    ("OTEL_TRACES_SAMPLER", "xray"),
    ("OTEL_EXPORTER_OTLP_PROTOCOL", "http/protobuf"),
    ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", f"{FIRST_PARTY_COLLECTOR}:4316/v1/traces"),
    ("OTEL_AWS_APPLICATION_SIGNALS_EXPORTER_ENDPOINT", f"{FIRST_PARTY_COLLECTOR}:4316/v1/metrics"),
    ("OTEL_METRICS_EXPORTER", "none"),
    ("OTEL_LOGS_EXPORTER", "none"),
]


def default_java_spec() -> JavaSpec:
    """Java spec from environment configuration alone."""
    return JavaSpec(
        image=JAVA_AGENT_IMAGE,
        env=[EnvVar(name=name, value=value) for name, value in DEFAULT_JAVA_ENV],
        volume_size_limit=JAVA_AGENT_VOLUME_SIZE or None,
    )


def load_java_spec(path: Optional[str] = None) -> JavaSpec:
    """
    Load the Java spec, applying the YAML override file when configured.

    A missing or unusable file is logged and the built-in spec is used.
    """
    spec = default_java_spec()
    config_path = path if path is not None else INSTRUMENTATION_CONFIG_PATH
    if not config_path:
        return spec

    try:
        raw: Any = yaml.safe_load(Path(config_path).read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to read instrumentation config {config_path}: {e}")
        return spec

    java = raw.get("java") if isinstance(raw, dict) else None
    if not isinstance(java, dict):
        logger.warning(f"No 'java' section in {config_path}; using built-in Java spec")
        return spec

    merged = spec.model_dump(by_alias=True, exclude_none=True)
    merged.update(java)
    try:
        spec = JavaSpec.model_validate(merged)
    except ValidationError as e:
        logger.error(f"Invalid 'java' section in {config_path}: {e}")
        return default_java_spec()
    logger.info(f"Loaded Java instrumentation spec from {config_path} (image={spec.image})")
    return spec
