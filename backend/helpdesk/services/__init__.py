"""
Service modules - Business logic layer

Modules:
    - ticket_service: ticket lifecycle, wires automation and approvals
    - approval_workflow_service: LM / HOD approval workflow
    - escalation_service: scheduled escalation rule checker
    - automation_service: event-triggered automation rules
    - rule_service: escalation / automation rule administration
    - notification_service: in-app notifications

Services are imported from their modules directly; the engine package
depends on notification_service.
"""
