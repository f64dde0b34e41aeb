# Injector/src/main.py
# @ai-rules:
# 1. [Pattern]: Bundle store, Java spec and PodMutator are built in lifespan() and published via dependencies.py.
# 2. [Gotcha]: A missing cluster config does not stop startup; envFrom lookups then fail softly per bundle.
# 3. [Constraint]: Noisy kubernetes/urllib3 loggers are squelched to WARNING.
"""
Instrumentation Injector - FastAPI Application

Kubernetes mutating admission webhook that grafts the OpenTelemetry agent
onto annotated pods without overriding the owner's observability settings.
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .bundles.kubernetes import KubernetesBundleStore
from .dependencies import set_java_spec, set_mutator
from .instrumentation.mutator import PodMutator
from .models import HealthResponse
from .routes import mutate_router
from .specs import load_java_spec

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG") else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

for noisy in ("kubernetes.client.rest", "urllib3.connectionpool"):
    logging.getLogger(noisy).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Loads the Kubernetes client and instrumentation spec on startup.
    """
    logger.info("Instrumentation injector starting up...")

    store = KubernetesBundleStore()
    if not store.available:
        logger.warning("Kubernetes client unavailable: envFrom bundles will not be resolved")

    set_mutator(PodMutator(store))
    set_java_spec(load_java_spec())
    logger.info("Pod mutator initialized")

    yield

    logger.info("Instrumentation injector shutting down")


app = FastAPI(
    title="Instrumentation Injector",
    description="Mutating admission webhook for OpenTelemetry auto-instrumentation",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health() -> HealthResponse:
    """Liveness/readiness probe."""
    return HealthResponse()


app.include_router(mutate_router)
