"""Rule Service - Escalation and automation rule administration"""
from typing import Any, Dict, List, Type

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..domain.models import (
    ActorContext, AutomationRule, AutomationRuleBase, AutomationRuleUpdate,
    EscalationRule, EscalationRuleBase, EscalationRuleUpdate
)
from ..domain.errors import RuleNotFoundError, RuleValidationError
from ..repositories.rule_repo import RuleRepository
from ..utils.idgen import generate_rule_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

SYSTEM_FIELDS = ("created_at", "updated_at", "rule_id", "execution_count", "last_executed_at")


def _validated(model: Type[BaseModel], data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate merged rule fields, reporting problems as RuleValidationError"""
    try:
        return model.model_validate(data).model_dump()
    except PydanticValidationError as e:
        raise RuleValidationError(
            "Rule definition is invalid",
            details={"errors": [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]}
        )


class RuleService:
    """Service for managing escalation and automation rules"""

    def __init__(self):
        self.repo = RuleRepository()

    # =========================================================================
    # Escalation rules
    # =========================================================================

    def create_escalation_rule(self, data: EscalationRuleBase, actor: ActorContext) -> EscalationRule:
        now = utc_now()
        rule = EscalationRule(
            rule_id=generate_rule_id(),
            created_at=now,
            updated_at=now,
            **data.model_dump()
        )
        logger.info(f"Escalation rule '{rule.name}' created", extra={"rule_id": rule.rule_id, "user_id": actor.user_id})
        return self.repo.create_escalation_rule(rule)

    def list_escalation_rules(self, active_only: bool = False) -> List[EscalationRule]:
        return self.repo.list_escalation_rules(active_only=active_only)

    def get_escalation_rule(self, rule_id: str) -> EscalationRule:
        return self.repo.get_escalation_rule_or_raise(rule_id)

    def update_escalation_rule(
        self,
        rule_id: str,
        changes: EscalationRuleUpdate,
        actor: ActorContext
    ) -> EscalationRule:
        rule = self.repo.get_escalation_rule_or_raise(rule_id)
        merged = rule.model_dump(exclude=set(SYSTEM_FIELDS))
        merged.update(changes.model_dump(exclude_unset=True))
        updates = _validated(EscalationRuleBase, merged)
        logger.info(f"Escalation rule '{rule.name}' updated", extra={"rule_id": rule_id, "user_id": actor.user_id})
        return self.repo.update_escalation_rule(rule_id, updates)

    def delete_escalation_rule(self, rule_id: str, actor: ActorContext) -> None:
        if not self.repo.delete_escalation_rule(rule_id):
            raise RuleNotFoundError(f"Escalation rule {rule_id} not found")
        logger.info(f"Escalation rule {rule_id} deleted", extra={"rule_id": rule_id, "user_id": actor.user_id})

    # =========================================================================
    # Automation rules
    # =========================================================================

    def create_automation_rule(self, data: AutomationRuleBase, actor: ActorContext) -> AutomationRule:
        now = utc_now()
        rule = AutomationRule(
            rule_id=generate_rule_id(),
            created_at=now,
            updated_at=now,
            **data.model_dump()
        )
        logger.info(f"Automation rule '{rule.name}' created", extra={"rule_id": rule.rule_id, "user_id": actor.user_id})
        return self.repo.create_automation_rule(rule)

    def list_automation_rules(self, active_only: bool = False) -> List[AutomationRule]:
        return self.repo.list_automation_rules(active_only=active_only)

    def get_automation_rule(self, rule_id: str) -> AutomationRule:
        return self.repo.get_automation_rule_or_raise(rule_id)

    def update_automation_rule(
        self,
        rule_id: str,
        changes: AutomationRuleUpdate,
        actor: ActorContext
    ) -> AutomationRule:
        rule = self.repo.get_automation_rule_or_raise(rule_id)
        merged = rule.model_dump(exclude=set(SYSTEM_FIELDS))
        merged.update(changes.model_dump(exclude_unset=True))
        updates = _validated(AutomationRuleBase, merged)
        logger.info(f"Automation rule '{rule.name}' updated", extra={"rule_id": rule_id, "user_id": actor.user_id})
        return self.repo.update_automation_rule(rule_id, updates)

    def delete_automation_rule(self, rule_id: str, actor: ActorContext) -> None:
        if not self.repo.delete_automation_rule(rule_id):
            raise RuleNotFoundError(f"Automation rule {rule_id} not found")
        logger.info(f"Automation rule {rule_id} deleted", extra={"rule_id": rule_id, "user_id": actor.user_id})
