# Injector/tests/test_specs.py
# @ai-rules:
# 1. [Constraint]: Tests use tmp_path only -- no dependency on a deployed config file.
"""Unit tests for instrumentation spec loading."""
from __future__ import annotations

from pathlib import Path

from src.specs import DEFAULT_JAVA_ENV, default_java_spec, load_java_spec


def test_default_spec_env_order():
    spec = default_java_spec()
    assert [e.name for e in spec.env] == [name for name, _ in DEFAULT_JAVA_ENV]
    assert spec.containers == ""


def test_no_config_path_uses_defaults():
    assert load_java_spec("") == default_java_spec()


def test_yaml_overrides(tmp_path: Path):
    path = tmp_path / "instrumentation.yaml"
    path.write_text(
        "java:\n"
        "  image: registry.local/java-agent:2.0\n"
        "  volumeSizeLimit: 500Mi\n"
        "  env:\n"
        "    - name: OTEL_PROPAGATORS\n"
        "      value: tracecontext,baggage\n"
    )
    spec = load_java_spec(str(path))
    assert spec.image == "registry.local/java-agent:2.0"
    assert spec.volume_size_limit == "500Mi"
    assert [(e.name, e.value) for e in spec.env] == [("OTEL_PROPAGATORS", "tracecontext,baggage")]


def test_missing_file_falls_back(tmp_path: Path, caplog):
    with caplog.at_level("ERROR"):
        spec = load_java_spec(str(tmp_path / "missing.yaml"))
    assert spec == default_java_spec()
    assert "missing.yaml" in caplog.text


def test_file_without_java_section(tmp_path: Path):
    path = tmp_path / "other.yaml"
    path.write_text("python:\n  image: x\n")
    assert load_java_spec(str(path)) == default_java_spec()


def test_wrongly_typed_java_section_falls_back(tmp_path: Path, caplog):
    path = tmp_path / "instrumentation.yaml"
    path.write_text(
        "java:\n"
        "  env:\n"
        "    - name: OTEL_SERVICE_NAME\n"
        "      value: 1\n"
    )
    with caplog.at_level("ERROR"):
        spec = load_java_spec(str(path))
    assert spec == default_java_spec()
    assert "instrumentation.yaml" in caplog.text


def test_env_not_a_list_falls_back(tmp_path: Path):
    path = tmp_path / "instrumentation.yaml"
    path.write_text("java:\n  env: OTEL_SERVICE_NAME=shop\n")
    assert load_java_spec(str(path)) == default_java_spec()
