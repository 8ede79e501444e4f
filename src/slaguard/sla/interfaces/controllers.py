"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA tracking endpoints.

Controllers are thin - they delegate to application services held on
``app.state`` by the application lifespan.
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status

from slaguard.sla.application import (
    SLAService,
    IncidentIngestRequest,
    AcknowledgeBreachRequest,
    IngestResponse,
    SLAStatusResponse,
    BreachResponse,
    SLAMetricsResponse,
    PolicyResponse,
    IIncidentRepository,
)
from slaguard.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Tracking"])


# ========== Example payloads for Swagger ==========

INCIDENT_CREATE_EXAMPLE = {
    "id": "INC-1042",
    "title": "Checkout API returning 502",
    "severity": "critical",
    "status": "in-progress",
    "created_at": "2024-01-15T10:00:00Z",
    "updated_at": "2024-01-15T10:05:00Z",
    "first_response_at": "2024-01-15T10:04:00Z"
}


# ========== Dependencies ==========

def get_sla_service(request: Request) -> SLAService:
    return request.app.state.sla_service


def get_incident_repository(request: Request) -> IIncidentRepository:
    return request.app.state.incident_repository


# ========== Route Handlers ==========

@router.post(
    "/incidents",
    response_model=IngestResponse,
    status_code=status.HTTP_200_OK,
    summary="Ingest incidents for SLA tracking",
    description="""
    Create or replace incidents by `id`.

    Each ingested incident is re-evaluated immediately unless `evaluate=false`,
    so breaches and escalations do not wait for the next scheduled tick.
    """
)
async def ingest_incidents(
    request: Request,
    payload: IncidentIngestRequest = Body(..., examples=[{"incidents": [INCIDENT_CREATE_EXAMPLE]}]),
    evaluate: bool = Query(True, description="Re-check each incident after ingestion"),
    incident_repo: IIncidentRepository = Depends(get_incident_repository)
) -> IngestResponse:
    created = updated = 0
    for dto in payload.incidents:
        if await incident_repo.get_by_id(dto.id) is None:
            created += 1
        else:
            updated += 1
        await incident_repo.save(dto.to_domain())

    if evaluate:
        engine = request.app.state.engine
        for dto in payload.incidents:
            await engine.evaluate_incident(dto.id)

    logger.info(
        "Incidents ingested",
        extra={"created_count": created, "updated_count": updated, "evaluated": evaluate}
    )
    return IngestResponse(created=created, updated=updated, evaluated=evaluate)


@router.get(
    "/incidents/{incident_id}/status",
    response_model=SLAStatusResponse,
    summary="Live SLA status of an incident"
)
async def get_incident_status(
    incident_id: str,
    service: SLAService = Depends(get_sla_service)
) -> SLAStatusResponse:
    return SLAStatusResponse.from_domain(await service.calculate_status(incident_id))


@router.get("/breaches", response_model=List[BreachResponse], summary="List SLA breaches")
async def list_breaches(
    unresolved_only: bool = Query(False),
    acknowledged: Optional[bool] = Query(None),
    service: SLAService = Depends(get_sla_service)
) -> List[BreachResponse]:
    breaches = await service.list_breaches(unresolved_only=unresolved_only, acknowledged=acknowledged)
    return [BreachResponse.from_domain(b) for b in breaches]


@router.post(
    "/breaches/{breach_id}/acknowledge",
    response_model=BreachResponse,
    summary="Acknowledge an SLA breach"
)
async def acknowledge_breach(
    breach_id: str,
    payload: AcknowledgeBreachRequest,
    service: SLAService = Depends(get_sla_service)
) -> BreachResponse:
    breach = await service.acknowledge_breach(breach_id, payload.acknowledged_by, payload.notes)
    return BreachResponse.from_domain(breach)


@router.get("/metrics", response_model=SLAMetricsResponse, summary="SLA compliance metrics")
async def get_metrics(service: SLAService = Depends(get_sla_service)) -> SLAMetricsResponse:
    return SLAMetricsResponse.from_domain(await service.get_metrics())


@router.get("/policies", response_model=List[PolicyResponse], summary="Active SLA policies")
async def list_policies(service: SLAService = Depends(get_sla_service)) -> List[PolicyResponse]:
    return [PolicyResponse.from_domain(p) for p in service.policies()]
