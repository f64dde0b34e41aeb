# Injector/src/instrumentation/envview.py
# @ai-rules:
# 1. [Constraint]: Direct env always shadows envFrom; an earlier envFrom shadows a later one. First occurrence wins.
# 2. [Pattern]: BundleCache lives for ONE mutation pass over ONE pod. Never share it across admission requests.
# 3. [Gotcha]: Bundle keys are expanded in sorted order so the view does not depend on dict/fetch ordering.
# 4. [Pattern]: Fetch failures are soft: log and skip that source, never abort the pass.
"""
Effective environment resolution.

Builds the set of variables a container will actually see: its declared
`env` plus every ConfigMap/Secret bulk-imported through `envFrom`.
"""
from __future__ import annotations

import logging
import time
from typing import Optional, Protocol

from ..models import BundleKind, Container, EnvVar
from .errors import BundleFetchError, BundleNotFoundError

logger = logging.getLogger(__name__)


class BundleStore(Protocol):
    """Source of ConfigMap/Secret contents."""

    def get(
        self,
        kind: BundleKind,
        namespace: str,
        name: str,
        timeout: Optional[float] = None,
    ) -> dict[str, str]:
        """Return bundle contents or raise BundleNotFoundError / BundleFetchError."""
        ...


class BundleCache:
    """
    Request-scoped cache of fetched bundles.

    Keyed by (kind, name): a ConfigMap and a Secret may share a name.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[BundleKind, str], dict[str, str]] = {}

    def get(self, kind: BundleKind, name: str) -> Optional[dict[str, str]]:
        return self._entries.get((kind, name))

    def put(self, kind: BundleKind, name: str, data: dict[str, str]) -> None:
        self._entries[(kind, name)] = data

    def __contains__(self, key: tuple[BundleKind, str]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _fetch_bundle(
    kind: BundleKind,
    name: str,
    optional: bool,
    namespace: str,
    cache: BundleCache,
    store: BundleStore,
    deadline: Optional[float],
) -> Optional[dict[str, str]]:
    """Cache lookup, else fetch and cache. Returns None when the source must be skipped."""
    cached = cache.get(kind, name)
    if cached is not None:
        logger.debug(f"Using cached {kind.value} from envFrom: {namespace}/{name}")
        return cached

    timeout = None
    if deadline is not None:
        timeout = deadline - time.monotonic()
        if timeout <= 0:
            logger.warning(
                f"Deadline exceeded before fetching {kind.value} {namespace}/{name} for envFrom; skipping"
            )
            return None

    try:
        data = store.get(kind, namespace, name, timeout=timeout)
    except BundleNotFoundError as e:
        if optional:
            logger.debug(f"Optional {kind.value} {namespace}/{name} not found; skipping")
        else:
            logger.error(f"Failed to fetch {kind.value} for envFrom: {e}")
        return None
    except BundleFetchError as e:
        logger.error(f"Failed to fetch {kind.value} for envFrom: {e}")
        return None

    cache.put(kind, name, data)
    logger.debug(f"Fetched and cached {kind.value} {namespace}/{name} ({len(data)} keys)")
    return data


def resolve_effective_env(
    container: Container,
    namespace: str,
    cache: BundleCache,
    store: BundleStore,
    deadline: Optional[float] = None,
) -> list[EnvVar]:
    """
    Resolve the ordered environment visible to a container.

    Args:
        container: Container whose env/envFrom to merge
        namespace: Namespace the bundles live in (the pod's namespace)
        cache: Request-scoped bundle cache, shared by all containers of the pod
        store: Bundle source, consulted on cache miss
        deadline: Absolute time.monotonic() deadline for fetches, if any

    Returns direct variables in declaration order followed by bundle-sourced
    variables whose names were not already present.
    """
    resolved = list(container.env)
    if not container.env_from:
        return resolved

    seen = {env.name for env in resolved}
    imported = 0
    for source in container.env_from:
        bundle = source.bundle
        if bundle is None:
            continue
        kind, ref = bundle

        data = _fetch_bundle(kind, ref.name, bool(ref.optional), namespace, cache, store, deadline)
        if data is None:
            continue

        prefix = source.prefix or ""
        for key in sorted(data):
            name = f"{prefix}{key}"
            if name in seen:
                continue
            seen.add(name)
            resolved.append(EnvVar(name=name, value=data[key]))
            imported += 1

    logger.debug(
        f"Resolved environment for container {container.name}: "
        f"direct={len(container.env)} envFrom={imported} total={len(resolved)}"
    )
    return resolved
