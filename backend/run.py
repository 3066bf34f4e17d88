"""
Start the helpdesk API with uvicorn.

Usage:
    python run.py
    python run.py --reload          # Auto-reload while developing
    python run.py --no-scheduler    # API only; run escalations from cron instead

Host and port default to API_HOST / API_PORT from the environment or .env.
Several API processes may run the scheduler at once: the escalation job
takes a MongoDB lock, so only one of them checks tickets per interval.
"""
import argparse
import os

import uvicorn

from helpdesk.config.settings import settings


def main():
    parser = argparse.ArgumentParser(description="Run the helpdesk approval & escalation API")
    parser.add_argument("--host", default=settings.api_host, help=f"Bind address (default: {settings.api_host})")
    parser.add_argument("--port", type=int, default=settings.api_port, help=f"Port (default: {settings.api_port})")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Worker processes (ignored with --reload)"
    )
    parser.add_argument(
        "--no-scheduler",
        action="store_true",
        help="Do not start the in-process escalation scheduler"
    )
    args = parser.parse_args()

    if args.no_scheduler:
        # This process loads the app itself when workers == 1; spawned workers read the env
        settings.scheduler_enabled = False
        os.environ["SCHEDULER_ENABLED"] = "false"

    workers = 1 if args.reload else args.workers
    scheduler = "off" if args.no_scheduler else f"every {settings.escalation_interval_minutes}m"
    print(f"Helpdesk API on http://{args.host}:{args.port} (workers={workers}, escalations {scheduler})")

    uvicorn.run(
        "helpdesk.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=workers
    )


if __name__ == "__main__":
    main()
