"""Condition Evaluator - Safe evaluation of rule conditions against tickets"""
from typing import Any, Dict, Iterable, Optional, Union

from ..domain.models import Condition, Ticket
from ..domain.enums import ConditionOperator
from ..utils.logger import get_logger

logger = get_logger(__name__)

EMPTY_VALUES = (None, "", "0")


class ConditionEvaluator:
    """
    Evaluate (field, operator, value) conditions against a ticket

    Uses a simple DSL - no eval() or exec(). All conditions must hold.
    """

    def matches_all(
        self,
        conditions: Iterable[Condition],
        ticket: Union[Ticket, Dict[str, Any]]
    ) -> bool:
        """
        Evaluate a list of conditions with AND logic

        Args:
            conditions: Conditions to check; ones without a field are skipped
            ticket: Ticket model or ticket document

        Returns:
            True if every condition holds
        """
        context = ticket.model_dump() if isinstance(ticket, Ticket) else ticket

        for condition in conditions:
            if not condition.field:
                continue
            if not self._evaluate_single(condition, context):
                return False
        return True

    def _evaluate_single(self, condition: Condition, context: Dict[str, Any]) -> bool:
        """Evaluate a single condition"""
        try:
            field_value = self._get_field_value(condition.field, context)
            return self._compare(field_value, condition.operator, condition.value)
        except Exception as e:
            logger.warning(
                f"Condition evaluation failed for {condition.field}: {e}",
                extra={"ticket_id": context.get("ticket_id")}
            )
            return False  # Fail closed

    def _get_field_value(self, field_path: str, context: Dict[str, Any]) -> Any:
        """
        Get field value from context using dot notation

        Example: "requester.department_id" -> context["requester"]["department_id"]
        """
        value: Any = context
        for part in field_path.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            else:
                return None
        return value

    def _compare(self, field_value: Any, operator: str, compare_value: Any) -> bool:
        """Compare values using operator"""

        if operator == ConditionOperator.EQUALS:
            return loose_equals(field_value, compare_value)

        elif operator == ConditionOperator.NOT_EQUALS:
            return not loose_equals(field_value, compare_value)

        elif operator == ConditionOperator.CONTAINS:
            if not isinstance(field_value, str):
                return False
            return str(compare_value) in field_value

        elif operator == ConditionOperator.NOT_CONTAINS:
            if not isinstance(field_value, str):
                return False
            return str(compare_value) not in field_value

        elif operator == ConditionOperator.IN:
            return any(loose_equals(field_value, v) for v in _as_list(compare_value))

        elif operator == ConditionOperator.NOT_IN:
            return not any(loose_equals(field_value, v) for v in _as_list(compare_value))

        elif operator == ConditionOperator.IS_EMPTY:
            return is_empty(field_value)

        elif operator == ConditionOperator.IS_NOT_EMPTY:
            return not is_empty(field_value)

        elif operator == ConditionOperator.GREATER_THAN:
            return self._compare_numeric(field_value, compare_value, lambda a, b: a > b)

        elif operator == ConditionOperator.LESS_THAN:
            return self._compare_numeric(field_value, compare_value, lambda a, b: a < b)

        logger.warning(f"Unknown condition operator: {operator}")
        return False

    def _compare_numeric(self, field_value: Any, compare_value: Any, comparator) -> bool:
        """Compare numeric values, treating None as 0"""
        a = _to_number(0 if field_value is None else field_value)
        b = _to_number(0 if compare_value is None else compare_value)
        if a is None or b is None:
            return False
        return comparator(a, b)


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _to_number(value: Any) -> Optional[float]:
    """Numeric value of ints, floats and numeric strings; None otherwise"""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def loose_equals(left: Any, right: Any) -> bool:
    """Equality where numbers and numeric strings compare by value ("5" == 5)"""
    if isinstance(left, bool) or isinstance(right, bool):
        return left == right
    left_num = _to_number(left)
    right_num = _to_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    return left == right


def is_empty(value: Any) -> bool:
    """None, "", "0", 0, False and empty collections count as empty"""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    return value in EMPTY_VALUES
