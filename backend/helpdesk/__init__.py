"""Helpdesk approval workflow, escalation and automation service"""

__version__ = "1.0.0"
