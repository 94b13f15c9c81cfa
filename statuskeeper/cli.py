"""
StatusKeeper CLI - Command line interface for managing StatusKeeper.

Provides commands for:
- Configuration validation
- Daemon management (start)
- Service listing and one-off probe cycles
- Status and sample queries
- Manual pruning and notifications
"""

import argparse
import html
import json
import sys
from pathlib import Path

from statuskeeper.config import load_config
from statuskeeper.core import now_ms
from statuskeeper.daemon import StatusDaemon
from statuskeeper.logging_config import get_logger, setup_logging
from statuskeeper.targets import flatten_targets

logger = get_logger(__name__)


def _require_config(args: argparse.Namespace) -> Path | None:
    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: Config file not found: {config_path}", file=sys.stderr)
        return None
    return config_path


def cmd_config_validate(args: argparse.Namespace) -> int:
    """Validate configuration file."""
    config_path = _require_config(args)
    if config_path is None:
        return 1

    try:
        config = load_config(config_path)
        print(f"✓ Configuration valid: {config_path}")
        print(f"  - {len(config.categories)} category(ies), {len(flatten_targets(config))} service(s)")
        print(f"  - Check interval: {config.check_interval_minutes:g} minute(s)")
        print(f"  - Data retention: {config.data_retention_hours:g} hour(s)")
        print(f"  - Mail notifications: {'enabled' if config.mail.enabled else 'disabled'}")
        return 0
    except Exception as e:
        print(f"✗ Configuration invalid: {e}", file=sys.stderr)
        return 1


def cmd_daemon_start(args: argparse.Namespace) -> int:
    """Start the StatusKeeper daemon."""
    config_path = _require_config(args)
    if config_path is None:
        return 1

    try:
        print(f"Starting StatusKeeper daemon with config: {config_path}")
        daemon = StatusDaemon(str(config_path))
        daemon.start()
        return 0
    except KeyboardInterrupt:
        print("\nShutting down...")
        return 0
    except Exception as e:
        print(f"Error starting daemon: {e}", file=sys.stderr)
        return 1


def cmd_service_list(args: argparse.Namespace) -> int:
    """List all configured services."""
    config_path = _require_config(args)
    if config_path is None:
        return 1

    try:
        config = load_config(config_path)
        targets = flatten_targets(config)
        print(f"Configured services ({len(targets)}):\n")

        for i, target in enumerate(targets, 1):
            print(f"{i}. {target.name} [{target.category}]")
            print(f"   URL:      {target.display_url}")
            print(f"   Expected: {target.expected_response_code}")
            print()

        return 0
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1


def cmd_probe(args: argparse.Namespace) -> int:
    """Run a single probe cycle and print the results."""
    config_path = _require_config(args)
    if config_path is None:
        return 1

    try:
        daemon = StatusDaemon(str(config_path))
        if args.dry_run:
            daemon.dispatcher.set_notifiers([])

        report = daemon.scheduler.run_probe_cycle()
        sent = daemon.dispatcher.drain()

        for target in daemon.registry.targets:
            latest = daemon.store.latest(target.url, 1)
            if latest:
                sample = latest[0]
                time_text = f"{sample.response_time}ms" if sample.response_time is not None else "no response"
                print(f"  {sample.status:<8} {target.name} ({time_text})")

        print(f"\n{report.probed} probed, {report.recorded} recorded, {report.pruned} pruned")
        if args.dry_run:
            print("(Dry run - notifications not sent)")
        else:
            print(f"{sent} alert(s) sent")
        daemon.store.close()
        return 0
    except Exception as e:
        print(f"Error running probe cycle: {e}", file=sys.stderr)
        logger.exception("Error in probe command")
        return 1


def cmd_status(args: argparse.Namespace) -> int:
    """Print the current status view as JSON."""
    config_path = _require_config(args)
    if config_path is None:
        return 1

    try:
        daemon = StatusDaemon(str(config_path))
        print(json.dumps(daemon.get_status_view(), indent=2))
        daemon.store.close()
        return 0
    except Exception as e:
        print(f"Error building status view: {e}", file=sys.stderr)
        return 1


def cmd_samples(args: argparse.Namespace) -> int:
    """Print raw samples for one service."""
    config_path = _require_config(args)
    if config_path is None:
        return 1

    try:
        daemon = StatusDaemon(str(config_path))
        since = now_ms() - int(args.since_minutes * 60 * 1000)
        samples = daemon.get_samples(args.url, since)
        for sample in samples:
            print(json.dumps({
                "url": sample.url,
                "status": sample.status,
                "response_time": sample.response_time,
                "timestamp": sample.timestamp,
            }))
        daemon.store.close()
        return 0
    except Exception as e:
        print(f"Error querying samples: {e}", file=sys.stderr)
        return 1


def cmd_prune(args: argparse.Namespace) -> int:
    """Delete samples outside the retention window."""
    config_path = _require_config(args)
    if config_path is None:
        return 1

    try:
        daemon = StatusDaemon(str(config_path))
        removed = daemon.retention.prune(daemon.config.data_retention_hours)
        print(f"Pruned {removed} sample(s)")
        daemon.store.close()
        return 0
    except Exception as e:
        print(f"Error pruning samples: {e}", file=sys.stderr)
        return 1


def cmd_notify(args: argparse.Namespace) -> int:
    """Send a manual notification through the configured notifiers."""
    config_path = _require_config(args)
    if config_path is None:
        return 1

    try:
        from statuskeeper.plugins import build_notifiers

        config = load_config(config_path)
        notifiers = build_notifiers(config)
        if not notifiers:
            print("No notifiers configured", file=sys.stderr)
            return 1

        print(f"Sending notification: {args.subject}\n")

        sent_count = 0
        for notifier in notifiers:
            name = notifier.__class__.__name__
            try:
                success = notifier.send(args.subject, f"<p>{html.escape(args.message)}</p>")
                print(f"  {'✓' if success else '✗'} {name}")
                if success:
                    sent_count += 1
            except Exception as e:
                print(f"  ✗ {name}: {e}")

        print(f"\nSent to {sent_count}/{len(notifiers)} notifier(s)")
        return 0 if sent_count > 0 else 1

    except Exception as e:
        print(f"Error sending notification: {e}", file=sys.stderr)
        return 1


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="statuskeeper",
        description="StatusKeeper - Service status monitoring"
    )
    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Config commands
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="subcommand")
    config_subparsers.add_parser("validate", help="Validate configuration file")

    # Daemon commands
    daemon_parser = subparsers.add_parser("daemon", help="Daemon management")
    daemon_subparsers = daemon_parser.add_subparsers(dest="subcommand")
    daemon_subparsers.add_parser("start", help="Start daemon (foreground)")

    # Service commands
    service_parser = subparsers.add_parser("service", help="Service management")
    service_subparsers = service_parser.add_subparsers(dest="subcommand")
    service_subparsers.add_parser("list", help="List all configured services")

    probe_parser = subparsers.add_parser("probe", help="Run one probe cycle now")
    probe_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Probe and record without sending notifications"
    )

    subparsers.add_parser("status", help="Print the status view as JSON")

    samples_parser = subparsers.add_parser("samples", help="Print raw samples for a service")
    samples_parser.add_argument("url", help="Service URL")
    samples_parser.add_argument(
        "--since-minutes",
        type=float,
        default=60,
        help="How far back to look (default: 60)"
    )

    subparsers.add_parser("prune", help="Delete samples outside the retention window")

    notify_parser = subparsers.add_parser("notify", help="Send manual notification")
    notify_parser.add_argument("subject", help="Notification subject")
    notify_parser.add_argument("message", help="Notification message")

    args = parser.parse_args()
    setup_logging(level=args.log_level)

    if not args.command:
        parser.print_help()
        return 0

    handlers = {
        ("config", "validate"): cmd_config_validate,
        ("daemon", "start"): cmd_daemon_start,
        ("service", "list"): cmd_service_list,
        ("probe", None): cmd_probe,
        ("status", None): cmd_status,
        ("samples", None): cmd_samples,
        ("prune", None): cmd_prune,
        ("notify", None): cmd_notify,
    }
    handler = handlers.get((args.command, getattr(args, "subcommand", None)))
    if handler is None:
        parser.print_help()
        return 0
    return handler(args)


if __name__ == '__main__':
    sys.exit(main())
