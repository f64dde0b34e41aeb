# Injector/tests/test_endpoint.py
# @ai-rules:
# 1. [Constraint]: Pure classification tests. No cluster, no fixtures beyond literals.
"""Unit tests for first-party endpoint classification."""
from __future__ import annotations

import pytest

from src.instrumentation.endpoint import is_first_party_endpoint


class TestFirstParty:
    @pytest.mark.parametrize("value", [
        "https://cloudwatch-agent.amazon-cloudwatch:4316",
        "http://cloudwatch-agent.amazon-cloudwatch:4316/v1/traces",
        "http://cloudwatch-agent.amazon-cloudwatch",
        "http://CloudWatch-Agent.Amazon-CloudWatch:4316/v1/metrics",
        "http://cloudwatch-agent-windows-headless.amazon-cloudwatch.svc.cluster.local:4316/v1/traces",
    ])
    def test_allow_listed_hosts(self, value: str):
        assert is_first_party_endpoint(value) is True


class TestThirdParty:
    @pytest.mark.parametrize("value", [
        "https://evil.example/cloudwatch-agent.amazon-cloudwatch",
        "https://evil.example/cloudwatch-agent.amazon-cloudwatch:4316",
        "https://cloudwatch-agent.amazon-cloudwatch.evil.example:4316",
        "https://cloudwatch-agent.amazon-cloudwatch@evil.example:4316",
        "https://evil.example?x=cloudwatch-agent.amazon-cloudwatch:4316",
        "http://cloudwatch-agent.amazon-cloudwatch:4317",
        "http://cloudwatch-agent.amazon-cloudwatch:notaport",
        "cloudwatch-agent.amazon-cloudwatch:4316",
        "//cloudwatch-agent.amazon-cloudwatch:4316",
        "//cloudwatch-agent.amazon-cloudwatch:4316?a=://x",
        "https://thirdparty/v1",
        "",
    ])
    def test_rejected(self, value: str):
        assert is_first_party_endpoint(value) is False

    def test_none_is_third_party(self):
        assert is_first_party_endpoint(None) is False


class TestCustomAllowList:
    def test_custom_hosts_and_port(self):
        assert is_first_party_endpoint("http://collector.obs:9000", {"collector.obs"}, 9000)
        assert not is_first_party_endpoint("http://collector.obs:4316", {"collector.obs"}, 9000)
        assert not is_first_party_endpoint("http://cloudwatch-agent.amazon-cloudwatch:9000", {"collector.obs"}, 9000)
