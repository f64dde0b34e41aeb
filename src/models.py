# Injector/src/models.py
# @ai-rules:
# 1. [Constraint]: All models are Pydantic BaseModel. Use Field() for defaults and descriptions.
# 2. [Pattern]: K8s-shaped models accept camelCase JSON via aliases and keep unknown fields (extra="allow").
# 3. [Gotcha]: Serialize with by_alias=True, exclude_none=True or the API server sees snake_case keys.
"""Pydantic schemas for pods, instrumentation specs and admission reviews."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _K8sModel(BaseModel):
    """Base for Kubernetes objects: camelCase aliases, unknown fields preserved."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")


# =============================================================================
# Environment
# =============================================================================

class EnvVar(_K8sModel):
    """A single container environment variable."""
    name: str = Field(..., description="Variable name")
    value: Optional[str] = Field(None, description="Literal value")
    value_from: Optional[dict[str, Any]] = Field(
        None, alias="valueFrom", description="fieldRef/secretKeyRef/configMapKeyRef source"
    )


class BundleKind(str, Enum):
    """Kinds of external key-value bundles a container can bulk-import."""
    CONFIGMAP = "configmap"
    SECRET = "secret"


class BundleRef(_K8sModel):
    """Reference to a ConfigMap or Secret by name."""
    name: str
    optional: Optional[bool] = None


class EnvFromSource(_K8sModel):
    """Bulk import of a bundle into a container's environment."""
    prefix: Optional[str] = Field(None, description="Prepended to every imported key")
    config_map_ref: Optional[BundleRef] = Field(None, alias="configMapRef")
    secret_ref: Optional[BundleRef] = Field(None, alias="secretRef")

    @property
    def bundle(self) -> Optional[tuple[BundleKind, BundleRef]]:
        """The referenced bundle, or None for an empty source."""
        if self.config_map_ref is not None:
            return BundleKind.CONFIGMAP, self.config_map_ref
        if self.secret_ref is not None:
            return BundleKind.SECRET, self.secret_ref
        return None


# =============================================================================
# Pod / Container
# =============================================================================

class SecurityContext(_K8sModel):
    """Subset of container/pod security settings the policy inspects."""
    run_as_non_root: Optional[bool] = Field(None, alias="runAsNonRoot")
    run_as_user: Optional[int] = Field(None, alias="runAsUser")


class VolumeMount(_K8sModel):
    name: str
    mount_path: str = Field(..., alias="mountPath")


class Volume(_K8sModel):
    name: str
    empty_dir: Optional[dict[str, Any]] = Field(None, alias="emptyDir")


class Container(_K8sModel):
    """A pod container (regular or init)."""
    name: str
    image: Optional[str] = None
    command: Optional[list[str]] = None
    env: list[EnvVar] = Field(default_factory=list)
    env_from: list[EnvFromSource] = Field(default_factory=list, alias="envFrom")
    volume_mounts: list[VolumeMount] = Field(default_factory=list, alias="volumeMounts")
    resources: Optional[dict[str, Any]] = None
    security_context: Optional[SecurityContext] = Field(None, alias="securityContext")


class PodSpec(_K8sModel):
    containers: list[Container] = Field(default_factory=list)
    init_containers: list[Container] = Field(default_factory=list, alias="initContainers")
    volumes: list[Volume] = Field(default_factory=list)
    security_context: Optional[SecurityContext] = Field(None, alias="securityContext")
    node_selector: Optional[dict[str, str]] = Field(None, alias="nodeSelector")


class ObjectMeta(_K8sModel):
    name: Optional[str] = None
    generate_name: Optional[str] = Field(None, alias="generateName")
    namespace: Optional[str] = None
    annotations: dict[str, str] = Field(default_factory=dict)


class Pod(_K8sModel):
    """A pod as seen by the admission webhook."""
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec = Field(default_factory=PodSpec)

    @property
    def display_name(self) -> str:
        """Name for log lines; pods created by controllers only have generateName at admission."""
        return self.metadata.name or self.metadata.generate_name or "<unnamed>"


# =============================================================================
# Instrumentation
# =============================================================================

class JavaSpec(BaseModel):
    """
    Java runtime instrumentation settings.

    `containers` is the comma-joined target list; empty means every eligible
    container in the pod.
    """
    model_config = ConfigDict(populate_by_name=True)

    image: str = Field(..., description="Agent image that carries /javaagent.jar")
    env: list[EnvVar] = Field(default_factory=list, description="Proposed variables, in injection order")
    containers: str = Field("", description="Comma-joined target container names")
    volume_size_limit: Optional[str] = Field(None, alias="volumeSizeLimit")
    resources: Optional[dict[str, Any]] = None


class Instrumentation(BaseModel):
    """One runtime's instrumentation applied to a pod."""
    runtime: str = Field(..., description="Runtime key, e.g. 'java'")
    spec: JavaSpec


# =============================================================================
# Admission
# =============================================================================

class AdmissionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    uid: str
    namespace: Optional[str] = None
    operation: Optional[str] = None
    object: Optional[dict[str, Any]] = None


class AdmissionReview(BaseModel):
    """admission.k8s.io/v1 AdmissionReview envelope."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    api_version: str = Field("admission.k8s.io/v1", alias="apiVersion")
    kind: str = "AdmissionReview"
    request: Optional[AdmissionRequest] = None
    response: Optional[dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
