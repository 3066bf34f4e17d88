"""Rule Engine - Conditions, actions and approval decisions"""
from .condition_evaluator import ConditionEvaluator
from .action_executor import ActionExecutor
from .approval_policy import ApprovalPolicy
from .approver_resolver import ApproverResolver
from .history_writer import HistoryWriter

__all__ = [
    "ConditionEvaluator",
    "ActionExecutor",
    "ApprovalPolicy",
    "ApproverResolver",
    "HistoryWriter",
]
