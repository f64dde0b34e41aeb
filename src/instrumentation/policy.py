# Injector/src/instrumentation/policy.py
# @ai-rules:
# 1. [Pattern]: Three tiers. should_install_agent (global gate) -> signal gates (metrics/logs/traces) -> should_inject_variable.
# 2. [Constraint]: Pure functions over the effective env view. No I/O, no mutation, never raise.
# 3. [Constraint]: A variable the user already set is NEVER overridden. First occurrence of a name is authoritative.
# 4. [Gotcha]: Pod-level runAsNonRoot without runAsUser vetoes install even if the container names a UID:
#    init containers do not inherit container-level settings.
"""
Injection policy engine.

Decides, from a container's effective environment and security settings,
whether the agent is installed, which signals keep the user's exporters, and
which proposed variables may be added.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..models import EnvVar, SecurityContext
from .config import DEFAULT_CONFIG, EngineConfig
from .endpoint import is_first_party_endpoint

logger = logging.getLogger(__name__)


def find_env(envs: Sequence[EnvVar], name: str) -> Optional[EnvVar]:
    """First occurrence of a variable, or None."""
    for env in envs:
        if env.name == name:
            return env
    return None


def is_env_set(envs: Sequence[EnvVar], name: str) -> bool:
    """A variable is set when its first occurrence has a non-empty value or a valueFrom source."""
    env = find_env(envs, name)
    if env is None:
        return False
    return bool(env.value) or env.value_from is not None


def get_env_value(envs: Sequence[EnvVar], name: str) -> str:
    """Literal value of the first occurrence; empty for absent or valueFrom variables."""
    env = find_env(envs, name)
    return (env.value or "") if env is not None else ""


class InjectionPolicy:
    """Policy decisions for one engine configuration."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config
        self.names = config.reserved

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def is_first_party(self, value: str) -> bool:
        return is_first_party_endpoint(
            value, self.config.first_party_hosts, self.config.first_party_port
        )

    def is_explicitly_enabled(self, envs: Sequence[EnvVar]) -> bool:
        """Enablement flag present and equal to 'true' (case-insensitive)."""
        return get_env_value(envs, self.names.enablement_flag).strip().lower() == "true"

    def _has_third_party_endpoint(self, envs: Sequence[EnvVar], name: str) -> bool:
        # valueFrom endpoints cannot be inspected, so they never count as first-party
        return is_env_set(envs, name) and not self.is_first_party(get_env_value(envs, name))

    def _enabled_despite_third_party_otlp(self, envs: Sequence[EnvVar]) -> bool:
        return (
            self._has_third_party_endpoint(envs, self.names.otlp_endpoint)
            and self.is_explicitly_enabled(envs)
        )

    # -------------------------------------------------------------------------
    # Tier 1: install gate
    # -------------------------------------------------------------------------

    def should_install_agent(
        self,
        envs: Sequence[EnvVar],
        pod_security: Optional[SecurityContext] = None,
        container_security: Optional[SecurityContext] = None,
    ) -> bool:
        """Decide whether the agent is installed into this container at all."""
        pod_uid = pod_security.run_as_user if pod_security else None
        if pod_security and pod_security.run_as_non_root and pod_uid is None:
            logger.info("Skipping agent: pod requires non-root without runAsUser")
            return False

        if container_security and container_security.run_as_non_root:
            effective_uid = (
                container_security.run_as_user
                if container_security.run_as_user is not None
                else pod_uid
            )
            if effective_uid is None:
                logger.info("Skipping agent: container requires non-root without runAsUser")
                return False

        if self.is_explicitly_enabled(envs):
            return True

        for role in self.names.endpoint_roles:
            if self._has_third_party_endpoint(envs, role):
                logger.info(f"Skipping agent: {role} routes to a third-party destination")
                return False
        return True

    # -------------------------------------------------------------------------
    # Tier 2: per-signal gates
    # -------------------------------------------------------------------------

    def should_disable_metrics(self, envs: Sequence[EnvVar]) -> bool:
        """True when the metrics exporter should be forced to 'none'."""
        if self._enabled_despite_third_party_otlp(envs):
            return False
        return not is_env_set(envs, self.names.metrics_endpoint)

    def should_disable_logs(self, envs: Sequence[EnvVar]) -> bool:
        """True when the logs exporter should be forced to 'none'."""
        if self._enabled_despite_third_party_otlp(envs):
            return False
        return not is_env_set(envs, self.names.logs_endpoint)

    def should_override_traces_endpoint(self, envs: Sequence[EnvVar]) -> bool:
        """True when traces go to the first-party endpoint with the recommended sampler/exporter."""
        if self._enabled_despite_third_party_otlp(envs):
            return False
        # Presence, not value: an empty user endpoint keeps the sampler untouched too
        return find_env(envs, self.names.traces_endpoint) is None

    # -------------------------------------------------------------------------
    # Tier 3: per-variable gate
    # -------------------------------------------------------------------------

    def should_inject_variable(
        self,
        envs: Sequence[EnvVar],
        name: str,
        value: Optional[str] = None,
    ) -> bool:
        """
        Decide whether a proposed variable may be added.

        `value` is the proposed value; exporter selectors only defer to the
        disable gates when they propose 'none' (or the value is unknown).
        """
        if find_env(envs, name) is not None:
            return False

        names = self.names
        if name == names.metrics_exporter:
            return self.should_disable_metrics(envs) if value in (None, "none") else True
        if name == names.logs_exporter:
            return self.should_disable_logs(envs) if value in (None, "none") else True
        if name in (names.traces_endpoint, names.traces_exporter, names.sampler, names.sampler_arg):
            return self.should_override_traces_endpoint(envs)

        # Remaining reserved-prefix and non-reserved names: absent, so inject
        return True
