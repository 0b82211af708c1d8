"""
Notification Cron Job: periodic delivery of scheduled and failed notifications.

This module runs as a scheduled job (via cron, a container scheduler or
similar) to send notifications that could not be sent inline.

Typical cron schedule: * * * * * (every minute), with --retry every 5 minutes
"""

import argparse
import asyncio
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

import httpx

from ..core.config import Settings, get_settings
from ..core.database import create_engine_from_settings, create_session_factory
from ..services.notification_scheduler import NotificationScheduler
from ..services.notification_service import build_notification_service


logger = logging.getLogger(__name__)

SEVERITY_COLORS = {
    "critical": "#dc2626",
    "error": "#dc2626",
    "warning": "#f59e0b",
}


# =============================================================================
# ALERTING
# =============================================================================


async def send_alert(
    title: str,
    message: str,
    severity: str = "error",
    details: dict | None = None,
    settings: Settings | None = None,
) -> None:
    """
    Report a job problem to the log and, when configured, to the Slack
    alerts channel and a generic webhook (PagerDuty, Opsgenie, ...).

    Alert delivery errors are logged, never raised.
    """
    settings = settings or get_settings()
    level = logging.CRITICAL if severity == "critical" else (
        logging.WARNING if severity == "warning" else logging.ERROR
    )
    logger.log(level, f"[CRON ALERT] {title}: {message}" + (f" | Details: {details}" if details else ""))

    timestamp = datetime.now(timezone.utc).isoformat()
    targets = []
    if settings.slack_alerts_webhook_url:
        targets.append((
            "Slack",
            settings.slack_alerts_webhook_url,
            _slack_payload(title, message, severity, details, timestamp),
        ))
    if settings.alert_webhook_url:
        targets.append((
            "webhook",
            settings.alert_webhook_url,
            {
                "title": title,
                "message": message,
                "severity": severity,
                "timestamp": timestamp,
                "source": "fleet-notifications-cron",
                "details": details or {},
            },
        ))
    if not targets:
        return

    async with httpx.AsyncClient(timeout=10) as client:
        for name, url, payload in targets:
            try:
                response = await client.post(url, json=payload)
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Failed to send {name} alert: {e}")


def _slack_payload(
    title: str,
    message: str,
    severity: str,
    details: dict | None,
    timestamp: str,
) -> dict:
    fields = [f"• *{key}*: {value}" for key, value in (details or {}).items()]
    blocks = [
        {"type": "header", "text": {"type": "plain_text", "text": title}},
        {"type": "section", "text": {"type": "mrkdwn", "text": message}},
    ]
    if fields:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": "\n".join(fields)}})
    blocks.append({
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"Severity: *{severity.upper()}* | {timestamp}"}],
    })
    return {"attachments": [{"color": SEVERITY_COLORS.get(severity, "#f59e0b"), "blocks": blocks}]}


# =============================================================================
# JOB
# =============================================================================


async def run_notification_job(
    database_url: str | None = None,
    retry: bool = False,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """
    Main entry point for the notification cron job.

    This function:
    1. Sends scheduled and pending notifications that are due
    2. Optionally retries failed notifications with budget left
    3. Logs results and alerts on crashes or failed deliveries

    Each sweep runs in its own transaction.

    Returns:
        Job result summary
    """
    settings = settings or get_settings()
    start_time = datetime.now(timezone.utc)
    logger.info(f"Starting notification job at {start_time.isoformat()}")

    engine = create_engine_from_settings(settings, database_url=database_url)
    session_factory = create_session_factory(engine)

    results: dict[str, Any] = {
        "started_at": start_time.isoformat(),
        "completed_at": None,
        "scheduled_sent": 0,
        "scheduled_failed": 0,
        "retried_sent": 0,
        "retried_failed": 0,
        "errors": [],
    }

    try:
        # Step 1: Scheduled and pending notifications
        async with session_factory() as session:
            async with session.begin():
                scheduler = NotificationScheduler(
                    session,
                    build_notification_service(session, settings),
                    batch_size=settings.notification_batch_size,
                )
                sweep = await scheduler.run_scheduled_sweep()
                results["scheduled_sent"] = sweep.sent
                results["scheduled_failed"] = sweep.failed
                results["errors"].extend(sweep.errors)

                logger.info(f"Sent {sweep.sent} scheduled notifications, {sweep.failed} failed")

        # Step 2: Retries (in separate transaction)
        if retry:
            async with session_factory() as session:
                async with session.begin():
                    scheduler = NotificationScheduler(
                        session,
                        build_notification_service(session, settings),
                        batch_size=settings.notification_batch_size,
                    )
                    sweep = await scheduler.run_retry_sweep()
                    results["retried_sent"] = sweep.sent
                    results["retried_failed"] = sweep.failed
                    results["errors"].extend(sweep.errors)

                    logger.info(f"Retried {sweep.sent} failed notifications, {sweep.failed} failed again")

    except Exception as e:
        error_msg = f"Notification job failed: {str(e)}"
        logger.error(error_msg)
        results["errors"].append(error_msg)

        await send_alert(
            title="Notification Cron Job Failed",
            message="The notification processing job crashed unexpectedly.",
            severity="critical",
            details={
                "error": str(e),
                "traceback": traceback.format_exc()[-500:],  # Last 500 chars
                "started_at": results["started_at"],
                "sent_before_crash": results["scheduled_sent"],
            },
            settings=settings,
        )
        raise

    finally:
        await engine.dispose()

    end_time = datetime.now(timezone.utc)
    results["completed_at"] = end_time.isoformat()
    results["duration_seconds"] = (end_time - start_time).total_seconds()

    logger.info(
        f"Notification job completed in {results['duration_seconds']:.2f}s: "
        f"{results['scheduled_sent']} scheduled sent, {results['retried_sent']} retried"
    )

    failed_total = results["scheduled_failed"] + results["retried_failed"]
    if failed_total > 0:
        await send_alert(
            title="Notification Job Completed with Warnings",
            message=f"The notification job completed but {failed_total} notifications failed to send.",
            severity="warning",
            details={
                "scheduled_sent": results["scheduled_sent"],
                "retried_sent": results["retried_sent"],
                "failed": failed_total,
                "errors": results["errors"][:5],  # First 5 errors
            },
            settings=settings,
        )

    return results


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Process scheduled notifications and optionally retry failed ones"
    )
    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL"),
        help="Database connection string (defaults to DATABASE_URL)",
    )
    parser.add_argument(
        "--retry",
        action="store_true",
        help="Also retry failed notifications",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the notification job."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = get_settings()
    database_url = args.database_url or settings.database_url

    try:
        results = asyncio.run(run_notification_job(
            database_url=database_url,
            retry=args.retry,
            settings=settings,
        ))
    except Exception as e:
        print(f"Job failed: {e}")
        return 1

    print(f"Sent {results['scheduled_sent']} scheduled notifications.")
    if args.retry:
        print(f"Retried {results['retried_sent']} failed notifications.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
