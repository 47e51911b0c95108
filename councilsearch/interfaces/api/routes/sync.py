"""
Sync Admin Routes - Connector configuration, validation, preview and index status.

Validation failures are part of the response body (``is_valid`` false with an
error code and message). Only bad input, a missing connector and
infrastructure failures turn into error responses.
"""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from councilsearch.domains.sync import (
    ConnectorConfigService,
    ConnectorStatus,
    IndexStatusReport,
    IndexStatusService,
    SyncJob,
    SyncPreview,
    SyncPreviewService,
    SyncValidationReport,
    SyncValidator,
    ValidationResult,
)
from councilsearch.domains.sync.preview import MAX_PREVIEW_LIMIT
from councilsearch.interfaces.api.deps import (
    get_connector_service,
    get_index_status_service,
    get_preview_service,
    get_sync_validator,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectorOverview(BaseModel):
    """Live connector state and its most recent sync run."""

    status: ConnectorStatus
    latest_sync_job: SyncJob | None = None


class ScopeUpdateRequest(BaseModel):
    city_ids: list[str] = Field(..., description="Cities the connector should sync")
    require_remote_health: bool = False


class ValidateRequest(BaseModel):
    operation: Literal["validateRemote", "validateLocal", "compare", "full"]
    city_ids: list[str] = Field(default_factory=list)
    require_remote_health: bool = False


class PreviewRequest(BaseModel):
    city_ids: list[str]
    limit: int = Field(default=5, ge=1, le=MAX_PREVIEW_LIMIT)
    city_id: str | None = None
    meeting_id: str | None = None
    subject_id: str | None = None


@router.get("/connector", response_model=ConnectorOverview)
async def get_connector(
    connector: ConnectorConfigService = Depends(get_connector_service),
) -> ConnectorOverview:
    """Current connector scope, liveness and latest sync job."""
    status = await connector.get_connector_status()
    latest = await connector.get_latest_sync_job()
    return ConnectorOverview(status=status, latest_sync_job=latest)


@router.put("/connector", response_model=SyncValidationReport)
async def update_connector(
    request: ScopeUpdateRequest,
    response: Response,
    validator: SyncValidator = Depends(get_sync_validator),
) -> SyncValidationReport:
    """
    Validate a new city scope and push it to the connector when safe.

    Responds 409 with the validation report when the update was refused.
    """
    report = await validator.validate_and_apply(
        request.city_ids, require_remote_health=request.require_remote_health
    )
    if not report.applied:
        response.status_code = 409
    return report


@router.post("/validate", response_model=None)
async def validate(
    request: ValidateRequest,
    validator: SyncValidator = Depends(get_sync_validator),
    connector: ConnectorConfigService = Depends(get_connector_service),
) -> SyncValidationReport | ValidationResult:
    """
    Run one validation operation.

    - **validateRemote**: Is the deployed query still returning rows?
    - **validateLocal**: Would the proposed cities return rows?
    - **compare**: How does the deployed query differ from the proposed one?
    - **full**: Every check, in order, as one report
    """
    logger.info(
        "Sync validation requested: operation=%s cities=%s", request.operation, request.city_ids
    )

    if request.operation == "validateRemote":
        _, result = await validator.check_deployed()
        return result

    if request.operation == "full":
        return await validator.validate(
            request.city_ids, require_remote_health=request.require_remote_health
        )

    existence = await validator.check_existence(request.city_ids)
    if not existence.is_valid:
        return existence

    if request.operation == "validateLocal":
        return await validator.check_proposed(request.city_ids)

    config = await connector.get_config()
    return validator.compare(config.current_query, request.city_ids)


@router.post("/preview", response_model=SyncPreview)
async def preview(
    request: PreviewRequest,
    service: SyncPreviewService = Depends(get_preview_service),
) -> SyncPreview:
    """Sample the documents the proposed cities would sync."""
    return await service.preview(
        request.city_ids,
        limit=request.limit,
        city_id=request.city_id,
        meeting_id=request.meeting_id,
        subject_id=request.subject_id,
    )


@router.get("/status", response_model=IndexStatusReport)
async def index_status(
    service: IndexStatusService = Depends(get_index_status_service),
) -> IndexStatusReport:
    """Per-city comparison of the database and the search index."""
    return await service.city_status()
