"""
FastAPI routes for the trading summary service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from app.dependencies import get_dispatch_service, get_record_store
from app.schemas import SummaryGenerationRequest, SummaryGenerationResult, SummaryRecord

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post(
    "/summaries",
    status_code=HTTPStatus.ACCEPTED,
    response_model=SummaryGenerationResult,
)
async def create_summary(
    payload: SummaryGenerationRequest,
    response: Response,
    dispatch_service: Annotated[Any, Depends(get_dispatch_service)],
) -> SummaryGenerationResult:
    """
    Create a summary record and generate it inline or in the background.

    Responds with 201 and the finished record when generation completed inline,
    otherwise 202 with the acceptance acknowledgement.
    """
    result = await dispatch_service.submit(payload)
    if not result.accepted:
        response.status_code = HTTPStatus.CREATED
    logger.info(
        "Summary %s submitted (%s)",
        result.summary_id,
        result.mode,
        extra={"summary_id": result.summary_id, "owner_id": payload.owner_id},
    )
    return result


@router.get("/summaries/{summary_id}", response_model=SummaryRecord)
async def get_summary(
    summary_id: str,
    record_store: Annotated[Any, Depends(get_record_store)],
    owner_id: str = Query(..., description="Owner the summary must belong to."),
) -> SummaryRecord:
    """Return a summary record owned by ``owner_id``."""
    record = record_store.find_by_id(summary_id)
    if record is None or record.owner_id != owner_id:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Summary not found.")
    return record


__all__ = ["router"]
