"""AdmissionReview webhook endpoint."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from limits_admission.admission.engine import DecisionEngine
from limits_admission.admission.models import AdmissionReview
from limits_admission.api.deps import get_engine
from limits_admission.core.errors import AdmissionControllerError
from limits_admission.logging import bind_context

router = APIRouter()
logger = structlog.get_logger()


def decode_review(body: bytes) -> AdmissionReview:
    """Decode a review; raises HTTP 400 when it is malformed or has no request."""
    try:
        review = AdmissionReview.model_validate_json(body)
    except ValidationError as e:
        logger.error("unable_to_decode_request", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    if review.request is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="admission review carries no request",
        )
    return review


@router.post("/", status_code=status.HTTP_200_OK)
@router.post("/validate", status_code=status.HTTP_200_OK)
async def review_admission(
    request: Request,
    engine: DecisionEngine = Depends(get_engine),  # noqa: B008
) -> dict[str, Any]:
    """Validate one AdmissionReview and return it with ``response`` filled in."""
    body = await request.body()
    review = decode_review(body)

    log = bind_context(uid=review.request.uid, kind=review.request.kind.kind)
    log.debug("handling_request", operation=review.request.operation, namespace=review.request.namespace)

    try:
        review.response = engine.handle_admission(review.request)
    except AdmissionControllerError as e:
        log.error("unable_to_handle_admission_request", error=e.message)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message
        ) from e

    log.debug("handling_response", allowed=review.response.allowed)
    return review.to_wire()
