"""
Backend Scripts Module

Available scripts:
    - check_escalations.py: Runs the escalation check once (for cron)
    - seed_data.py: Loads departments, users, categories and sample rules

Usage:
    python -m scripts.check_escalations
    python -m scripts.seed_data
"""
