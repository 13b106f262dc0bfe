"""
Periodic maintenance: expired session and blacklist sweeps.

Both sweeps are plain DELETEs on expiry columns, so they are idempotent and
safe to run alongside request traffic (or from several workers at once).

Usage:
    from portal.maintenance import start_sweeper
    start_sweeper(app)   # called by create_app outside TESTING
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from portal.auth.revocation import RevocationStore
from portal.sessions import SessionRegistry

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "auth_sweeps"


def run_sweeps(
    sessions: SessionRegistry,
    revocations: RevocationStore,
    now: Optional[datetime] = None,
) -> dict:
    """Delete expired sessions and blacklist entries.

    Returns:
        {"sessions": n, "revoked_tokens": m} rows removed
    """
    now = now or datetime.now(timezone.utc)
    removed = {
        "sessions": sessions.sweep_expired(now),
        "revoked_tokens": revocations.sweep_expired(now),
    }
    logger.debug(f"Maintenance sweep: {removed}")
    return removed


def start_sweeper(app) -> Optional[BackgroundScheduler]:
    """Schedule run_sweeps every SWEEP_INTERVAL_MINUTES on a background thread.

    Returns the scheduler, or None when the app is under TESTING.
    """
    if app.config.get("TESTING"):
        return None

    settings = app.extensions["settings"]
    scheduler = BackgroundScheduler(timezone="UTC", daemon=True)
    scheduler.add_job(
        run_sweeps,
        trigger=IntervalTrigger(minutes=settings.auth.sweep_interval_minutes),
        args=(app.extensions["session_registry"], app.extensions["revocation_store"]),
        id=SWEEP_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    app.extensions["maintenance_scheduler"] = scheduler
    logger.info(f"Maintenance sweeps scheduled every {settings.auth.sweep_interval_minutes} minutes")
    return scheduler
