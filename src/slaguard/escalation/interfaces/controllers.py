"""
Escalation Controllers (API Routes)
====================================

Rule listing and toggling, execution history, manual firing and on-demand
evaluation.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from slaguard.escalation.application import (
    EscalationEngine,
    IEscalationRuleRepository,
    IExecutionRepository,
    RuleToggleRequest,
    ManualExecuteRequest,
    EvaluateRequest,
    RuleResponse,
    ExecutionResponse,
    TickReportResponse,
)

router = APIRouter(prefix="/escalation", tags=["Escalation"])


# ========== Dependencies ==========

def get_engine(request: Request) -> EscalationEngine:
    return request.app.state.engine


def get_rule_repository(request: Request) -> IEscalationRuleRepository:
    return request.app.state.rule_repository


def get_execution_repository(request: Request) -> IExecutionRepository:
    return request.app.state.execution_repository


# ========== Route Handlers ==========

@router.get("/rules", response_model=List[RuleResponse], summary="List escalation rules")
async def list_rules(
    rules: IEscalationRuleRepository = Depends(get_rule_repository)
) -> List[RuleResponse]:
    return [RuleResponse.from_domain(r) for r in rules.list()]


@router.patch("/rules/{rule_id}", response_model=RuleResponse, summary="Enable or disable a rule")
async def toggle_rule(
    rule_id: str,
    payload: RuleToggleRequest,
    rules: IEscalationRuleRepository = Depends(get_rule_repository)
) -> RuleResponse:
    return RuleResponse.from_domain(rules.set_enabled(rule_id, payload.enabled))


@router.get("/executions", response_model=List[ExecutionResponse], summary="Escalation history")
async def list_executions(
    incident_id: Optional[str] = Query(None),
    rule_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    executions: IExecutionRepository = Depends(get_execution_repository)
) -> List[ExecutionResponse]:
    found = await executions.list(incident_id=incident_id, rule_id=rule_id, limit=limit)
    return [ExecutionResponse.from_domain(e) for e in found]


@router.post(
    "/rules/{rule_id}/execute",
    response_model=ExecutionResponse,
    summary="Fire a rule manually",
    description="Runs the rule's actions now, ignoring its conditions, cooldown and enabled flag."
)
async def execute_rule(
    rule_id: str,
    payload: ManualExecuteRequest,
    engine: EscalationEngine = Depends(get_engine)
) -> ExecutionResponse:
    execution = await engine.execute_manually(rule_id, payload.incident_id)
    return ExecutionResponse.from_domain(execution)


@router.post("/evaluate", response_model=TickReportResponse, summary="Run an evaluation now")
async def evaluate(
    payload: Optional[EvaluateRequest] = None,
    engine: EscalationEngine = Depends(get_engine)
) -> TickReportResponse:
    if payload is not None and payload.incident_id:
        report = await engine.evaluate_incident(payload.incident_id)
    else:
        report = await engine.run_tick()
    return TickReportResponse.from_domain(report)
