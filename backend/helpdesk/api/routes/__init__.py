"""API Routes module"""
from fastapi import APIRouter

from .tickets import router as tickets_router
from .approvals import router as approvals_router
from .escalation_rules import router as escalation_rules_router
from .automation_rules import router as automation_rules_router
from .notifications import router as notifications_router

# Main API router
api_router = APIRouter()

api_router.include_router(tickets_router, prefix="/tickets", tags=["Tickets"])
api_router.include_router(approvals_router, prefix="/approvals", tags=["Approvals"])
api_router.include_router(escalation_rules_router, prefix="/admin/escalation-rules", tags=["Escalation Rules"])
api_router.include_router(automation_rules_router, prefix="/admin/automation-rules", tags=["Automation Rules"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

__all__ = ["api_router"]
