from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from limits_admission import __version__
from limits_admission.admission.engine import DecisionEngine
from limits_admission.admission.models import AdmissionRequest, GroupVersionKind
from limits_admission.api.deps import get_engine, get_store
from limits_admission.core.errors import AdmissionControllerError
from limits_admission.policy.store import PolicyStore

router = APIRouter()
logger = structlog.get_logger()

HEALTHCHECK_UID = "e911857d-c318-11e8-bbad-025000000001"

# A pod without containers passes every policy, so a deny here means the
# decision path itself is broken.
HEALTHCHECK_REQUEST = AdmissionRequest(
    uid=HEALTHCHECK_UID,
    kind=GroupVersionKind(kind="Pod"),
    operation="CREATE",
    object={
        "metadata": {
            "name": "test",
            "uid": HEALTHCHECK_UID,
            "creationTimestamp": "2018-09-28T12:20:39Z",
        }
    },
)


class HealthResponse(BaseModel):
    status: str
    version: str = __version__
    generation: int | None = None
    policy_source: str | None = None
    policy_loaded_at: datetime | None = None
    detail: str | None = None


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check(
    engine: DecisionEngine = Depends(get_engine),  # noqa: B008
    store: PolicyStore | None = Depends(get_store),  # noqa: B008
) -> HealthResponse | JSONResponse:
    """Run a canned pod review through the engine and report the active policy."""
    health = HealthResponse(status="healthy")
    if store is not None:
        generation = store.current
        health.generation = store.generation_number
        health.policy_source = generation.source
        health.policy_loaded_at = generation.loaded_at

    try:
        response = engine.handle_admission(HEALTHCHECK_REQUEST)
    except AdmissionControllerError as e:
        health.status = "unhealthy"
        health.detail = e.message
    else:
        if not response.allowed:
            health.status = "unhealthy"
            health.detail = "error request not allowed"

    if health.status != "healthy":
        logger.warning("healthcheck_failed", detail=health.detail)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=health.model_dump(mode="json"),
        )
    return health
