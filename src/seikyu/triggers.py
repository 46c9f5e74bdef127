"""Time-based triggers and the scheduler loop that fires them.

A trigger is a cron expression bound to a handler name. The scheduler
evaluates enabled triggers in the configured timezone and runs the handlers
that are due. The daily trigger checks the billing-day rule and, on the
billing day, creates the invoice for the current month.
"""

import fcntl
import logging
import os
import signal
import sqlite3
import time
from datetime import date, datetime
from pathlib import Path
from typing import Callable
from zoneinfo import ZoneInfo

from croniter import croniter

from . import db
from .config import Config, load_config
from .errors import ConfigurationError
from .invoice import business_today, business_tz, create_invoice
from .scheduling import next_billing_day, should_run_today

logger = logging.getLogger("seikyu.triggers")

DAILY_HANDLER = "daily_trigger"


def _now(tz=None):
    """Current time; thin wrapper for testability."""
    return datetime.now(tz)


# Graceful shutdown flag
_shutdown_requested = False


def _signal_handler(signum, frame):
    """Handle shutdown signals."""
    global _shutdown_requested
    logger.info("Received signal %d, shutting down gracefully...", signum)
    _shutdown_requested = True


def daily_trigger(config: Config, today: date | None = None) -> str:
    """Create this month's invoice if today is the billing day.

    Returns a status message: why the run was skipped, the PDF URL, or the
    error text.
    """
    if today is None:
        today = business_today(config)

    if not should_run_today(today):
        message = f"Skipped: {today} is not a billing day (next: {next_billing_day(today)})"
        logger.info(message)
        return message

    logger.info("Billing day %s, creating invoice", today)
    result = create_invoice(config, today=today)
    return result.message


HANDLERS: dict[str, Callable[[Config, date], str]] = {
    DAILY_HANDLER: daily_trigger,
}


def set_daily_trigger(conn: sqlite3.Connection, hour: int = 9) -> int:
    """Install the daily trigger, replacing any existing ones. Returns its ID."""
    if not 0 <= hour <= 23:
        raise ConfigurationError(f"Invalid trigger hour: {hour}")
    removed = db.delete_triggers_for_handler(conn, DAILY_HANDLER)
    if removed:
        logger.info("Removed %d existing %s trigger(s)", removed, DAILY_HANDLER)
    trigger_id = db.add_trigger(conn, DAILY_HANDLER, f"0 {hour} * * *")
    logger.info("Installed %s trigger %d at %02d:00", DAILY_HANDLER, trigger_id, hour)
    return trigger_id


def _from_db_timestamp(value: str, tz: ZoneInfo) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        # DB stores UTC via datetime('now')
        parsed = parsed.replace(tzinfo=ZoneInfo("UTC"))
    return parsed.astimezone(tz)


def _is_due(trigger: db.Trigger, now: datetime, tz: ZoneInfo) -> bool:
    if trigger.last_run_at:
        base = _from_db_timestamp(trigger.last_run_at, tz)
    elif trigger.created_at:
        # created_at as base so a new trigger doesn't fire immediately
        # when its hour has already passed today
        base = _from_db_timestamp(trigger.created_at, tz)
    else:
        base = now.replace(hour=0, minute=0, second=0, microsecond=0)

    next_run = croniter(trigger.cron_expression, base).get_next(datetime)
    logger.debug(
        "Trigger %d (%s): base=%s next_run=%s now=%s",
        trigger.id, trigger.handler, base, next_run, now,
    )
    return now >= next_run


def check_triggers(
    conn: sqlite3.Connection,
    config: Config,
    now: datetime | None = None,
) -> list[int]:
    """Run every due trigger. Returns the IDs of the triggers that fired."""
    tz = business_tz(config)
    if now is None:
        now = _now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    else:
        now = now.astimezone(tz)

    fired = []
    triggers = db.get_enabled_triggers(conn)
    if not triggers:
        logger.debug("No enabled triggers")
        return fired

    for trigger in triggers:
        handler = HANDLERS.get(trigger.handler)
        if handler is None:
            logger.warning("Trigger %d has unknown handler %r", trigger.id, trigger.handler)
            continue
        try:
            due = _is_due(trigger, now, tz)
        except (ValueError, KeyError) as e:
            logger.error("Trigger %d has invalid cron %r: %s", trigger.id, trigger.cron_expression, e)
            continue
        if not due:
            continue

        # Stamp first so a crashing handler doesn't refire every poll
        db.set_trigger_last_run(conn, trigger.id)
        conn.commit()
        fired.append(trigger.id)

        logger.info("Firing trigger %d (%s)", trigger.id, trigger.handler)
        try:
            message = handler(config, now.date())
            logger.info("Trigger %d result: %s", trigger.id, message)
        except Exception as e:
            logger.exception("Trigger %d (%s) failed: %s", trigger.id, trigger.handler, e)

    return fired


def run_once(config: Config) -> list[int]:
    """Evaluate triggers once (for system-cron invocation)."""
    config.db_path.parent.mkdir(parents=True, exist_ok=True)
    db.init_db(config.db_path)
    with db.get_db(config.db_path) as conn:
        return check_triggers(conn, config)


def run_daemon(config: Config) -> None:
    """
    Run the trigger scheduler as a daemon (continuous loop).
    Handles graceful shutdown via SIGTERM/SIGINT.
    """
    global _shutdown_requested

    # Exclusive lock so only one scheduler fires triggers
    config.temp_dir.mkdir(parents=True, exist_ok=True)
    lock_path = config.temp_dir / "seikyu-scheduler.lock"
    lock_file = open(lock_path, "w")
    try:
        fcntl.flock(lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        logger.error("Another scheduler daemon is already running. Exiting.")
        lock_file.close()
        return

    # Write PID to lock file for debugging
    lock_file.write(str(os.getpid()))
    lock_file.flush()

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    logger.info("STARTUP Scheduler daemon starting (pid: %d)", os.getpid())
    logger.info("STARTUP Trigger poll interval: %ds", config.scheduler.poll_interval)
    logger.info("STARTUP Timezone: %s", config.timezone)

    config.db_path.parent.mkdir(parents=True, exist_ok=True)
    db.init_db(config.db_path)

    while not _shutdown_requested:
        try:
            with db.get_db(config.db_path) as conn:
                check_triggers(conn, config)
        except Exception as e:
            logger.error("Error checking triggers: %s", e)

        # Sleep in short steps so a signal ends the loop promptly
        deadline = time.monotonic() + config.scheduler.poll_interval
        while not _shutdown_requested and time.monotonic() < deadline:
            time.sleep(min(1.0, max(0.0, deadline - time.monotonic())))

    fcntl.flock(lock_file, fcntl.LOCK_UN)
    lock_file.close()

    logger.info("Shutdown complete.")


def main():
    """Entry point for scheduler script."""
    import argparse

    from .logging_setup import setup_logging

    parser = argparse.ArgumentParser(description="seikyu trigger scheduler")
    parser.add_argument("-c", "--config", help="Path to config file")
    parser.add_argument("--daemon", "-d", action="store_true", help="Run as daemon (continuous loop)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    config = load_config(Path(args.config) if args.config else None)
    setup_logging(config, verbose=args.verbose, daemon_mode=args.daemon)

    if args.daemon:
        run_daemon(config)
    else:
        fired = run_once(config)
        logger.info("Fired %d trigger(s)", len(fired))


if __name__ == "__main__":
    main()
