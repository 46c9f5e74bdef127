"""CLI interface for invoice runs and administration."""

import argparse
import json
import sys
from datetime import date
from pathlib import Path

from . import db
from .config import load_config
from .errors import ConfigurationError
from .invoice import business_today, create_invoice, format_amount
from .logging_setup import setup_logging
from .period import BillingPeriod
from .properties import PROPERTY_DEFAULTS, get_property, initialize_properties, resolve_settings, set_property
from .scheduling import billing_day, next_billing_day, should_run_today
from .triggers import daily_trigger, run_daemon, run_once, set_daily_trigger
from .troubleshoot import check_file_access, check_properties, check_work_log


def _config(args):
    return load_config(Path(args.config) if args.config else None)


def _ensure_db(config) -> None:
    """Create the database and its tables on first use."""
    config.db_path.parent.mkdir(parents=True, exist_ok=True)
    db.init_db(config.db_path)


def _open_db(config):
    _ensure_db(config)
    return db.get_db(config.db_path)


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date (expected YYYY-MM-DD): {value!r}")


def cmd_init(args):
    """Initialize the database and seed default properties."""
    config = _config(args)
    with _open_db(config) as conn:
        initialize_properties(conn)
    print(f"Database initialized at {config.db_path}")


def cmd_create(args):
    """Create the invoice for a period."""
    config = _config(args)
    try:
        period = BillingPeriod.parse(args.period) if args.period else None
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    _ensure_db(config)
    result = create_invoice(config, period)
    if not result.ok:
        print(f"Error ({result.error_kind}): {result.error}", file=sys.stderr)
        sys.exit(1)

    print(f"Period:      {result.period}")
    print(f"Total hours: {result.total_hours}")
    print(f"Amount:      {format_amount(result.amount)}")
    print(f"PDF:         {result.pdf_path}")
    print(f"Archived:    {result.archive_path}")
    print(result.url)


def cmd_daily(args):
    """Run the daily check (creates the invoice on the billing day)."""
    config = _config(args)
    _ensure_db(config)
    print(daily_trigger(config, args.date))


def cmd_should_run(args):
    """Show whether the invoice run happens on a date."""
    day = args.date or business_today(_config(args))
    run = should_run_today(day)
    print(json.dumps({
        "date": day.isoformat(),
        "should_run": run,
        "billing_day": billing_day(day.year, day.month).isoformat(),
        "next_billing_day": next_billing_day(day).isoformat(),
    }))


def cmd_trigger_set(args):
    config = _config(args)
    hour = args.hour if args.hour is not None else config.scheduler.trigger_hour
    with _open_db(config) as conn:
        try:
            trigger_id = set_daily_trigger(conn, hour)
        except ConfigurationError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    print(f"Daily trigger {trigger_id} set for {hour:02d}:00 ({config.timezone})")


def cmd_trigger_list(args):
    config = _config(args)
    with _open_db(config) as conn:
        triggers = db.list_triggers(conn)
    if not triggers:
        print("No triggers")
        return
    for t in triggers:
        state = "enabled" if t.enabled else "disabled"
        print(f"{t.id:4d}  {t.handler:16s}  {t.cron_expression:12s}  {state:8s}  last run: {t.last_run_at or '-'}")


def cmd_run(args):
    """Evaluate triggers once, or loop as a daemon."""
    config = _config(args)
    if args.daemon:
        run_daemon(config)
    else:
        fired = run_once(config)
        print(f"Fired {len(fired)} trigger(s)")


def cmd_props_list(args):
    config = _config(args)
    with _open_db(config) as conn:
        for key in PROPERTY_DEFAULTS:
            print(f"{key} = {get_property(conn, key)}")


def cmd_props_get(args):
    config = _config(args)
    with _open_db(config) as conn:
        print(get_property(conn, args.key))


def cmd_props_set(args):
    config = _config(args)
    with _open_db(config) as conn:
        set_property(conn, args.key, args.value)
    print(f"{args.key} = {args.value}")


def cmd_props_init(args):
    config = _config(args)
    with _open_db(config) as conn:
        print(initialize_properties(conn))


def cmd_check_work_log(args):
    config = _config(args)
    try:
        with _open_db(config) as conn:
            settings = resolve_settings(conn)
    except ConfigurationError as e:
        print(json.dumps({"status": "ERROR", "message": f"Error: {e}"}, ensure_ascii=False))
        sys.exit(1)
    print(json.dumps(check_work_log(config, settings), ensure_ascii=False, indent=2))


def cmd_check_properties(args):
    config = _config(args)
    with _open_db(config) as conn:
        print(json.dumps(check_properties(conn), ensure_ascii=False, indent=2))


def cmd_check_file(args):
    config = _config(args)
    print(json.dumps(check_file_access(config, args.path), ensure_ascii=False, indent=2))


def main():
    parser = argparse.ArgumentParser(description="seikyu: monthly invoice automation")
    parser.add_argument("-c", "--config", help="Path to config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose (DEBUG) logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # init
    subparsers.add_parser("init", help="Initialize database and default properties")

    # create
    create_parser = subparsers.add_parser("create", help="Create an invoice now")
    create_parser.add_argument("-p", "--period", help="Billing month as YYYY-MM (default: current month)")

    # daily
    daily_parser = subparsers.add_parser("daily", help="Run the daily billing-day check")
    daily_parser.add_argument("--date", type=_iso_date, help="Pretend today is YYYY-MM-DD")

    # should-run
    should_run_parser = subparsers.add_parser("should-run", help="Check the billing-day rule for a date")
    should_run_parser.add_argument("--date", type=_iso_date, help="Date as YYYY-MM-DD (default: today)")

    # trigger
    trigger_parser = subparsers.add_parser("trigger", help="Manage the daily trigger")
    trigger_subparsers = trigger_parser.add_subparsers(dest="trigger_action", required=True)
    trigger_set_parser = trigger_subparsers.add_parser("set", help="Install the daily trigger (replaces existing)")
    trigger_set_parser.add_argument("--hour", type=int, help="Hour of day, 0-23 (default: scheduler.trigger_hour)")
    trigger_subparsers.add_parser("list", help="List triggers")

    # run
    run_parser = subparsers.add_parser("run", help="Fire due triggers")
    run_parser.add_argument("-d", "--daemon", action="store_true", help="Run continuously")

    # props
    props_parser = subparsers.add_parser("props", help="Invoice settings")
    props_subparsers = props_parser.add_subparsers(dest="props_action", required=True)
    props_subparsers.add_parser("list", help="Show every setting with its effective value")
    props_get_parser = props_subparsers.add_parser("get", help="Get a setting")
    props_get_parser.add_argument("key")
    props_set_parser = props_subparsers.add_parser("set", help="Set a setting")
    props_set_parser.add_argument("key")
    props_set_parser.add_argument("value")
    props_subparsers.add_parser("init", help="Reset every setting to its default")

    # check
    check_parser = subparsers.add_parser("check", help="Troubleshooting checks")
    check_subparsers = check_parser.add_subparsers(dest="check_action", required=True)
    check_subparsers.add_parser("work-log", help="Check the work-log workbook and sheet")
    check_subparsers.add_parser("properties", help="Dump stored properties")
    check_file_parser = check_subparsers.add_parser("file", help="Check access to a stored file")
    check_file_parser.add_argument("path", help="Nextcloud path")

    args = parser.parse_args()

    # Load config and setup logging (except for init which doesn't need full config)
    if args.command != "init":
        config = _config(args)
        setup_logging(config, verbose=args.verbose, daemon_mode=getattr(args, "daemon", False))

    commands = {
        "init": cmd_init,
        "create": cmd_create,
        "daily": cmd_daily,
        "should-run": cmd_should_run,
        "run": cmd_run,
    }

    if args.command == "trigger":
        trigger_commands = {
            "set": cmd_trigger_set,
            "list": cmd_trigger_list,
        }
        trigger_commands[args.trigger_action](args)
    elif args.command == "props":
        props_commands = {
            "list": cmd_props_list,
            "get": cmd_props_get,
            "set": cmd_props_set,
            "init": cmd_props_init,
        }
        props_commands[args.props_action](args)
    elif args.command == "check":
        check_commands = {
            "work-log": cmd_check_work_log,
            "properties": cmd_check_properties,
            "file": cmd_check_file,
        }
        check_commands[args.check_action](args)
    else:
        commands[args.command](args)


if __name__ == "__main__":
    main()
