# Injector/src/bundles/kubernetes.py
# @ai-rules:
# 1. [Constraint]: This module is the only K8s API touchpoint. The decision engine sees the BundleStore protocol only.
# 2. [Pattern]: In-cluster config first, kubeconfig fallback (local development).
# 3. [Gotcha]: Secret .data values are base64-encoded by the API; decode before exposing them as env values.
# 4. [Pattern]: 404 -> BundleNotFoundError, anything else -> BundleFetchError. Callers decide severity.
"""
Kubernetes-backed bundle store.

Reads ConfigMaps and Secrets referenced via envFrom. Calls are synchronous;
the admission route runs the whole mutation pass in an executor.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..instrumentation.errors import BundleFetchError, BundleNotFoundError
from ..models import BundleKind

logger = logging.getLogger(__name__)


def load_core_api() -> Optional[Any]:
    """
    Build a CoreV1Api client.

    Returns None when neither in-cluster config nor kubeconfig is available.
    """
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.info("Loaded kubeconfig")
        except config.ConfigException as e:
            logger.warning(f"No Kubernetes config available: {e}")
            return None
    return client.CoreV1Api()


def _decode_secret_data(data: dict[str, str], namespace: str, name: str) -> dict[str, str]:
    decoded: dict[str, str] = {}
    for key, value in data.items():
        try:
            decoded[key] = base64.b64decode(value, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise BundleFetchError(
                BundleKind.SECRET.value, namespace, name, f"undecodable key {key}: {e}"
            ) from e
    return decoded


class KubernetesBundleStore:
    """
    ConfigMap/Secret reader.

    Usage:
        store = KubernetesBundleStore()          # loads cluster config
        store.get(BundleKind.CONFIGMAP, "shop", "app-env", timeout=2.0)
    """

    def __init__(self, core_api: Optional[Any] = None):
        self._core_api = core_api if core_api is not None else load_core_api()

    @property
    def available(self) -> bool:
        return self._core_api is not None

    def get(
        self,
        kind: BundleKind,
        namespace: str,
        name: str,
        timeout: Optional[float] = None,
    ) -> dict[str, str]:
        """
        Fetch bundle contents as a flat str -> str mapping.

        Raises:
            BundleNotFoundError: The object does not exist
            BundleFetchError: Any other API or transport failure
        """
        if self._core_api is None:
            raise BundleFetchError(kind.value, namespace, name, "Kubernetes client not available")

        kwargs = {"_request_timeout": timeout} if timeout is not None else {}
        try:
            if kind is BundleKind.CONFIGMAP:
                obj = self._core_api.read_namespaced_config_map(name, namespace, **kwargs)
            else:
                obj = self._core_api.read_namespaced_secret(name, namespace, **kwargs)
        except ApiException as e:
            if e.status == 404:
                raise BundleNotFoundError(kind.value, namespace, name, "not found") from e
            raise BundleFetchError(kind.value, namespace, name, f"API error {e.status}: {e.reason}") from e
        except Exception as e:
            raise BundleFetchError(kind.value, namespace, name, str(e)) from e

        data = obj.data or {}
        if kind is BundleKind.SECRET:
            return _decode_secret_data(data, namespace, name)
        return dict(data)
