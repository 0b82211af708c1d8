"""
Background Jobs for Fleet Notifications.

This module contains scheduled and background jobs:
- notification_cron: Periodic sending of scheduled and failed notifications
"""

from .notification_cron import run_notification_job

__all__ = ["run_notification_job"]
