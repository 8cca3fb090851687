"""
Session Ticket Keys CLI — entry point for the scheduler and operators.

Usage:
    session-ticket-keys rotate        # Run one rotation cycle (cron)
    session-ticket-keys check         # Validate the host
    session-ticket-keys directives    # Print server configuration lines
    session-ticket-keys uninstall     # Remove all install artifacts

Configuration comes from ``TICKET_KEYS_*`` environment variables.

Exit status: 0 on success, 1 when a rotation partially failed or was
skipped, 2 on configuration or fatal errors.
"""

from __future__ import annotations

import sys
import argparse
import logging

from .checks import run_checks, server_directives
from .diagnostics import configure_logging
from .exceptions import TicketKeyError
from .rotation import RotationConfig, Rotator, SystemPaths
from .teardown import Teardown

logger = logging.getLogger("ticket_keys.cli")

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_FATAL = 2


def _rotate(args: argparse.Namespace) -> int:
    config = RotationConfig.from_env()
    report = Rotator(config).rotate()
    if args.json:
        sys.stdout.write(report.to_json().decode("utf-8") + "\n")
    for server, generation in report.failed:
        sys.stderr.write(f"failed: {server} {generation}\n")
    for path in report.purge_failed:
        sys.stderr.write(f"stale: {path}\n")
    if report.skipped:
        sys.stderr.write("skipped: no random source available\n")
    return report.exit_code


def _check(args: argparse.Namespace) -> int:
    config = RotationConfig.from_env()
    results = run_checks(config, SystemPaths.from_env())
    failed = [r for r in results if not r.ok and not r.advisory]
    return EXIT_FATAL if failed else EXIT_OK


def _directives(args: argparse.Namespace) -> int:
    config = RotationConfig.from_env()
    for server, lines in server_directives(config).items():
        sys.stdout.write(f"# {server}\n")
        for line in lines:
            sys.stdout.write(f"{line}\n")
    return EXIT_OK


def _uninstall(args: argparse.Namespace) -> int:
    Teardown(SystemPaths.from_env()).run()
    return EXIT_OK


_COMMANDS = {
    "rotate": _rotate,
    "check": _check,
    "directives": _directives,
    "uninstall": _uninstall,
}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="session-ticket-keys",
        description="Rotate TLS session ticket keys on volatile storage.",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-s", "--silent", action="store_true")
    parser.add_argument("--json", action="store_true", help="JSON report and logs")
    parser.add_argument("command", choices=sorted(_COMMANDS))
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose, silent=args.silent, json=args.json)
    try:
        return _COMMANDS[args.command](args)
    except TicketKeyError as err:
        logger.error("%s", err)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
