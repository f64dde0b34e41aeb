# Injector/src/instrumentation/endpoint.py
# @ai-rules:
# 1. [Constraint]: Exact hostname match on the parsed authority. Never substring-match the raw value.
# 2. [Gotcha]: A value without a scheme (bare or scheme-relative) is third-party.
"""
First-party endpoint classification.

An endpoint routes to the first-party collector only when the authority of
the URL (hostname after the scheme separator, userinfo stripped) exactly
equals an allow-listed service host, optionally followed by the collector
port. Text anywhere else in the URL never counts.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional
from urllib.parse import urlsplit

from .config import DEFAULT_CONFIG

logger = logging.getLogger(__name__)


def is_first_party_endpoint(
    value: Optional[str],
    allowed_hosts: Optional[Iterable[str]] = None,
    port: Optional[int] = None,
) -> bool:
    """
    Classify a telemetry endpoint.

    Args:
        value: Endpoint as configured by the user (e.g. http://host:4316/v1/traces)
        allowed_hosts: First-party hostnames; defaults to the engine table
        port: Required port when one is given; defaults to the engine table

    Returns True iff the endpoint targets the first-party collector.
    """
    if not value:
        return False

    hosts = DEFAULT_CONFIG.first_party_hosts if allowed_hosts is None else allowed_hosts
    expected_port = DEFAULT_CONFIG.first_party_port if port is None else port

    try:
        parts = urlsplit(value.strip())
        hostname = parts.hostname
        actual_port = parts.port
    except ValueError as e:
        logger.debug(f"Unparseable endpoint {value!r}: {e}")
        return False

    # Scheme-relative and bare host:port values have no authority to trust
    if not parts.scheme or not parts.netloc:
        return False

    if not hostname or hostname.rstrip(".") not in {h.lower() for h in hosts}:
        return False
    return actual_port is None or actual_port == expected_port
