import argparse
import logging
import sys
from typing import List, Optional

from prayer_reminders.core.app import ReminderApp
from prayer_reminders.core.clock import to_zone


def setup_basic_logging(level: int = logging.DEBUG) -> None:
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        ))
        root_logger.addHandler(handler)
        root_logger.setLevel(level)
        logging.debug("Basic logging initialized")


def _print_scheduled(app: ReminderApp) -> None:
    zone = app.scheduler.active_zone()
    notifications = app.runtime.list_scheduled()
    if not notifications:
        print("No notifications scheduled")
        return
    for n in notifications:
        local = to_zone(n.fire_at_utc, zone).strftime("%Y-%m-%d %H:%M")
        print(f"{local}  {n.identifier}  {n.body or ''}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Prayer reminder scheduler')
    parser.add_argument('--config', help='Path to config file (default: ~/.prayer_reminders/config.yaml)')
    sub = parser.add_subparsers(dest='command')
    sub.add_parser('run', help='Run the scheduler daemon (default)')
    sub.add_parser('schedule', help='Rebuild reminders for today and tomorrow, then exit')
    sub.add_parser('list', help='List scheduled notifications')
    sub.add_parser('foreground', help='Report an app-foreground transition, then exit')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    setup_basic_logging()
    args = build_parser().parse_args(argv)
    command = args.command or 'run'

    if command == 'run':
        ReminderApp(config_path=args.config).run()
        return 0

    app = ReminderApp(config_path=args.config, watch_config=False)
    try:
        if command == 'schedule':
            count = app.reschedule(arm_refresh=True)
            print(f"Scheduled {count} prayer reminder(s)")
        elif command == 'list':
            _print_scheduled(app)
        elif command == 'foreground':
            app.monitor.start(app.events)
            app.report_app_state('active')
            print(f"{len(app.scheduler.get_scheduled_reminders())} prayer reminder(s) pending")
    finally:
        app.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
