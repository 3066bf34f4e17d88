"""
Escalation Rule Admin Routes

CRUD for escalation rules and a manual trigger for the escalation check.
"""

from typing import List
from fastapi import APIRouter, Depends, Query, status

from ..deps import require_permission
from ...domain.models import (
    ActorContext, EscalationRule, EscalationRuleBase, EscalationRuleUpdate, EscalationRunResult
)
from ...domain.roles import ESCALATION_RULES_MANAGE, ESCALATION_RULES_VIEW
from ...services.rule_service import RuleService
from ...services.escalation_service import EscalationService
from .schemas import ActionResponse

router = APIRouter()


@router.get("", response_model=List[EscalationRule])
async def list_escalation_rules(
    active_only: bool = Query(False),
    actor: ActorContext = Depends(require_permission(ESCALATION_RULES_VIEW))
):
    """Rules in evaluation order: priority desc, then oldest first"""
    return RuleService().list_escalation_rules(active_only=active_only)


@router.post("", response_model=EscalationRule, status_code=status.HTTP_201_CREATED)
async def create_escalation_rule(
    request: EscalationRuleBase,
    actor: ActorContext = Depends(require_permission(ESCALATION_RULES_MANAGE))
):
    return RuleService().create_escalation_rule(request, actor)


@router.post("/run", response_model=EscalationRunResult)
async def run_escalation_check(
    actor: ActorContext = Depends(require_permission(ESCALATION_RULES_MANAGE))
):
    """Run the escalation check now, under the shared job lock"""
    return EscalationService().run_exclusive()


@router.get("/{rule_id}", response_model=EscalationRule)
async def get_escalation_rule(
    rule_id: str,
    actor: ActorContext = Depends(require_permission(ESCALATION_RULES_VIEW))
):
    return RuleService().get_escalation_rule(rule_id)


@router.put("/{rule_id}", response_model=EscalationRule)
async def update_escalation_rule(
    rule_id: str,
    request: EscalationRuleUpdate,
    actor: ActorContext = Depends(require_permission(ESCALATION_RULES_MANAGE))
):
    return RuleService().update_escalation_rule(rule_id, request, actor)


@router.delete("/{rule_id}", response_model=ActionResponse)
async def delete_escalation_rule(
    rule_id: str,
    actor: ActorContext = Depends(require_permission(ESCALATION_RULES_MANAGE))
):
    RuleService().delete_escalation_rule(rule_id, actor)
    return ActionResponse(message=f"Escalation rule {rule_id} deleted")
