"""
Automation Rule Admin Routes
"""

from typing import List
from fastapi import APIRouter, Depends, Query, status

from ..deps import require_permission
from ...domain.models import ActorContext, AutomationRule, AutomationRuleBase, AutomationRuleUpdate
from ...domain.roles import AUTOMATION_RULES_MANAGE, AUTOMATION_RULES_VIEW
from ...services.rule_service import RuleService
from .schemas import ActionResponse

router = APIRouter()


@router.get("", response_model=List[AutomationRule])
async def list_automation_rules(
    active_only: bool = Query(False),
    actor: ActorContext = Depends(require_permission(AUTOMATION_RULES_VIEW))
):
    return RuleService().list_automation_rules(active_only=active_only)


@router.post("", response_model=AutomationRule, status_code=status.HTTP_201_CREATED)
async def create_automation_rule(
    request: AutomationRuleBase,
    actor: ActorContext = Depends(require_permission(AUTOMATION_RULES_MANAGE))
):
    return RuleService().create_automation_rule(request, actor)


@router.get("/{rule_id}", response_model=AutomationRule)
async def get_automation_rule(
    rule_id: str,
    actor: ActorContext = Depends(require_permission(AUTOMATION_RULES_VIEW))
):
    return RuleService().get_automation_rule(rule_id)


@router.put("/{rule_id}", response_model=AutomationRule)
async def update_automation_rule(
    rule_id: str,
    request: AutomationRuleUpdate,
    actor: ActorContext = Depends(require_permission(AUTOMATION_RULES_MANAGE))
):
    return RuleService().update_automation_rule(rule_id, request, actor)


@router.delete("/{rule_id}", response_model=ActionResponse)
async def delete_automation_rule(
    rule_id: str,
    actor: ActorContext = Depends(require_permission(AUTOMATION_RULES_MANAGE))
):
    RuleService().delete_automation_rule(rule_id, actor)
    return ActionResponse(message=f"Automation rule {rule_id} deleted")
