# Injector/src/routes/mutate.py
# @ai-rules:
# 1. [Pattern]: Runtime selection comes from pod annotations (inject-java / java-container-names).
# 2. [Constraint]: Only target misconfiguration rejects a pod. Internal faults admit the pod unmodified.
# 3. [Pattern]: The blocking mutation pass (K8s reads) runs in the default executor.
# 4. [Gotcha]: Patch replaces whole lists (/spec/containers, /spec/initContainers, /spec/volumes) with "add" ops,
#    which JSON Patch treats as replace when the member exists.
"""
Admission webhook endpoint.

Receives AdmissionReview requests for pods, applies the configured
instrumentations and answers with a JSONPatch.
"""
from __future__ import annotations

import asyncio
import base64
import functools
import json
import logging
import os
import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from ..dependencies import get_java_spec, get_mutator
from ..instrumentation.errors import DuplicateTargetError, InstrumentationConfigError
from ..instrumentation.mutator import PodMutator
from ..models import AdmissionReview, Instrumentation, JavaSpec, Pod

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admission"])

ANNOTATION_PREFIX = "instrumentation.opentelemetry.io/"
INJECT_JAVA_ANNOTATION = f"{ANNOTATION_PREFIX}inject-java"
JAVA_CONTAINER_NAMES_ANNOTATION = f"{ANNOTATION_PREFIX}java-container-names"

BUNDLE_FETCH_TIMEOUT = float(os.getenv("BUNDLE_FETCH_TIMEOUT", "5"))

# Pod spec lists an injector may append to, by JSON name
PATCHED_SPEC_FIELDS = ("containers", "initContainers", "volumes")


def select_instrumentations(pod: Pod, java_spec: JavaSpec) -> list[Instrumentation]:
    """Instrumentations requested by the pod's annotations."""
    annotations = pod.metadata.annotations
    selected = []
    if annotations.get(INJECT_JAVA_ANNOTATION, "").strip().lower() == "true":
        spec = java_spec.model_copy(
            update={"containers": annotations.get(JAVA_CONTAINER_NAMES_ANNOTATION, "")}
        )
        selected.append(Instrumentation(runtime="java", spec=spec))
    return selected


def build_patch(original: Pod, mutated: Pod) -> list[dict[str, Any]]:
    """JSONPatch operations turning the original pod spec into the mutated one."""
    before = original.spec.model_dump(by_alias=True, exclude_none=True)
    after = mutated.spec.model_dump(by_alias=True, exclude_none=True)
    ops = []
    for field in PATCHED_SPEC_FIELDS:
        if before.get(field, []) != after.get(field, []):
            ops.append({"op": "add", "path": f"/spec/{field}", "value": after.get(field, [])})
    return ops


def _review_response(
    uid: str,
    allowed: bool = True,
    patch: Optional[list[dict[str, Any]]] = None,
    message: Optional[str] = None,
) -> dict:
    response: dict[str, Any] = {"uid": uid, "allowed": allowed}
    if patch:
        response["patchType"] = "JSONPatch"
        response["patch"] = base64.b64encode(json.dumps(patch).encode()).decode()
    if message:
        response["status"] = {"code": 403, "message": message}
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "response": response,
    }


@router.post("/mutate", status_code=200)
async def mutate_pod(
    review: AdmissionReview,
    mutator: PodMutator = Depends(get_mutator),
    java_spec: JavaSpec = Depends(get_java_spec),
) -> dict:
    """
    Mutate an admitted pod.

    - Pods without instrumentation annotations pass through untouched
    - Conflicting container targets reject the pod
    - Everything else is admitted, patched when an agent was injected
    """
    request = review.request
    if request is None:
        raise HTTPException(status_code=400, detail="AdmissionReview has no request")

    try:
        pod = Pod.model_validate(request.object or {})
    except ValidationError as e:
        logger.error(f"Admission {request.uid}: cannot decode pod: {e}")
        return _review_response(request.uid)

    instrumentations = select_instrumentations(pod, java_spec)
    if not instrumentations:
        return _review_response(request.uid)

    namespace = request.namespace or pod.metadata.namespace
    deadline = time.monotonic() + BUNDLE_FETCH_TIMEOUT
    try:
        mutated = await asyncio.get_running_loop().run_in_executor(
            None,
            functools.partial(mutator.mutate, pod, instrumentations, namespace, deadline),
        )
    except (DuplicateTargetError, InstrumentationConfigError) as e:
        logger.warning(f"Admission {request.uid}: rejecting pod {pod.display_name}: {e}")
        return _review_response(request.uid, allowed=False, message=str(e))
    except Exception as e:
        logger.error(f"Admission {request.uid}: mutation failed for pod {pod.display_name}: {e}")
        return _review_response(request.uid)

    patch = build_patch(pod, mutated)
    logger.info(f"Admission {request.uid}: pod {pod.display_name} patched with {len(patch)} operations")
    return _review_response(request.uid, patch=patch)
