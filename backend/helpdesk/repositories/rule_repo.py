"""Rule Repository - Escalation and automation rules"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING

from .mongo_client import get_collection
from ..domain.models import EscalationRule, AutomationRule
from ..domain.errors import RuleNotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)

RuleT = TypeVar("RuleT", EscalationRule, AutomationRule)

# Highest priority first, then oldest
RULE_ORDER = [("priority", DESCENDING), ("created_at", ASCENDING), ("rule_id", ASCENDING)]


class RuleRepository:
    """Repository for escalation and automation rules"""

    def __init__(self):
        self._escalation: Collection = get_collection("escalation_rules")
        self._automation: Collection = get_collection("automation_rules")

    # =========================================================================
    # Escalation rules
    # =========================================================================

    def create_escalation_rule(self, rule: EscalationRule) -> EscalationRule:
        return self._insert(self._escalation, rule)

    def get_escalation_rule(self, rule_id: str) -> Optional[EscalationRule]:
        return self._get(self._escalation, EscalationRule, rule_id)

    def get_escalation_rule_or_raise(self, rule_id: str) -> EscalationRule:
        rule = self.get_escalation_rule(rule_id)
        if not rule:
            raise RuleNotFoundError(f"Escalation rule {rule_id} not found")
        return rule

    def list_escalation_rules(self, active_only: bool = False) -> List[EscalationRule]:
        query: Dict[str, Any] = {"is_active": True} if active_only else {}
        return self._list(self._escalation, EscalationRule, query)

    def update_escalation_rule(self, rule_id: str, updates: Dict[str, Any]) -> EscalationRule:
        return self._update(self._escalation, EscalationRule, rule_id, updates)

    def delete_escalation_rule(self, rule_id: str) -> bool:
        return self._escalation.delete_one({"rule_id": rule_id}).deleted_count > 0

    def record_escalation_execution(self, rule_id: str, executed_at: Optional[datetime] = None) -> None:
        self._record_execution(self._escalation, rule_id, executed_at)

    # =========================================================================
    # Automation rules
    # =========================================================================

    def create_automation_rule(self, rule: AutomationRule) -> AutomationRule:
        return self._insert(self._automation, rule)

    def get_automation_rule(self, rule_id: str) -> Optional[AutomationRule]:
        return self._get(self._automation, AutomationRule, rule_id)

    def get_automation_rule_or_raise(self, rule_id: str) -> AutomationRule:
        rule = self.get_automation_rule(rule_id)
        if not rule:
            raise RuleNotFoundError(f"Automation rule {rule_id} not found")
        return rule

    def list_automation_rules(
        self,
        active_only: bool = False,
        trigger_event: Optional[str] = None
    ) -> List[AutomationRule]:
        query: Dict[str, Any] = {}
        if active_only:
            query["is_active"] = True
        if trigger_event:
            query["trigger_event"] = trigger_event
        return self._list(self._automation, AutomationRule, query)

    def update_automation_rule(self, rule_id: str, updates: Dict[str, Any]) -> AutomationRule:
        return self._update(self._automation, AutomationRule, rule_id, updates)

    def delete_automation_rule(self, rule_id: str) -> bool:
        return self._automation.delete_one({"rule_id": rule_id}).deleted_count > 0

    def record_automation_execution(self, rule_id: str, executed_at: Optional[datetime] = None) -> None:
        self._record_execution(self._automation, rule_id, executed_at)

    # =========================================================================
    # Shared helpers
    # =========================================================================

    def _insert(self, collection: Collection, rule: RuleT) -> RuleT:
        doc = rule.model_dump()
        doc["_id"] = rule.rule_id
        collection.insert_one(doc)
        logger.info(f"Created rule: {rule.name}", extra={"rule_id": rule.rule_id, "rule_name": rule.name})
        return rule

    def _get(self, collection: Collection, model: Type[RuleT], rule_id: str) -> Optional[RuleT]:
        doc = collection.find_one({"rule_id": rule_id})
        if doc:
            doc.pop("_id", None)
            return model.model_validate(doc)
        return None

    def _list(self, collection: Collection, model: Type[RuleT], query: Dict[str, Any]) -> List[RuleT]:
        rules = []
        for doc in collection.find(query).sort(RULE_ORDER):
            doc.pop("_id", None)
            rules.append(model.model_validate(doc))
        return rules

    def _update(
        self,
        collection: Collection,
        model: Type[RuleT],
        rule_id: str,
        updates: Dict[str, Any]
    ) -> RuleT:
        updates["updated_at"] = utc_now()
        result = collection.find_one_and_update(
            {"rule_id": rule_id},
            {"$set": updates},
            return_document=True
        )
        if result is None:
            raise RuleNotFoundError(f"Rule {rule_id} not found")
        result.pop("_id", None)
        return model.model_validate(result)

    def _record_execution(
        self,
        collection: Collection,
        rule_id: str,
        executed_at: Optional[datetime]
    ) -> None:
        collection.update_one(
            {"rule_id": rule_id},
            {
                "$inc": {"execution_count": 1},
                "$set": {"last_executed_at": executed_at or utc_now()},
            }
        )
