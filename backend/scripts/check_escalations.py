"""
Check Escalations - Run the escalation checker once
Run: python -m scripts.check_escalations [--fail-if-locked] [--now ISO_TIME]

Shares the MongoDB job lock with the in-process scheduler, so it never
overlaps a scheduled run. Exit codes: 0 on success, 1 when another run
holds the lock and --fail-if-locked is given, 2 for an unparseable --now.

--now evaluates time triggers as of another instant, which is useful for
checking what a new rule would catch before enabling the schedule.
"""
import argparse
import json
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from helpdesk.services.escalation_service import EscalationService
from helpdesk.utils.logger import setup_logging, get_logger, set_correlation_id
from helpdesk.utils.idgen import generate_correlation_id
from helpdesk.utils.time import parse_iso

logger = get_logger("scripts.check_escalations")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check tickets against escalation rules")
    parser.add_argument(
        "--fail-if-locked",
        action="store_true",
        help="Exit with status 1 if another escalation run holds the lock"
    )
    parser.add_argument(
        "--now",
        metavar="ISO_TIME",
        help="Evaluate time triggers as of this ISO 8601 time (naive means UTC)"
    )
    args = parser.parse_args(argv)

    now = None
    if args.now:
        try:
            now = parse_iso(args.now)
        except ValueError as e:
            parser.error(f"invalid --now value {args.now!r}: {e}")

    setup_logging()
    set_correlation_id(generate_correlation_id())

    result = EscalationService().run_exclusive(now=now)
    print(json.dumps(result.model_dump()))

    if result.skipped_locked:
        logger.warning("Escalation check skipped: lock held by another process")
        return 1 if args.fail_if_locked else 0

    print(f"Checked {result.tickets_checked} tickets, escalated {result.tickets_escalated}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
