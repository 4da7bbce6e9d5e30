#!/usr/bin/env python3
"""
pgBackRest check probe

Monitoring entry point: checks the retention policy or the WAL archive
continuity of a pgBackRest stanza and reports it with monitoring exit codes.
"""

import logging
import sys
import time
from argparse import ArgumentParser

from pgbackrest_check.check.services import CheckContext, CheckKind
from pgbackrest_check.check.status import PgBackRestStatusProvider
from pgbackrest_check.utils.config import load_config
from pgbackrest_check.utils.exceptions import ProbeError


def setup_logging(log_file=None, debug=False):
    """Setup stderr and optional file logging. Stdout carries the check output."""
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format='%(asctime)s [%(levelname)s] %(message)s',
        handlers=handlers,
        force=True
    )


def build_parser():
    parser = ArgumentParser(description='pgBackRest retention and WAL archive check')
    parser.add_argument('--env-file', help='Path to .env file (default: .env in current directory)')
    parser.add_argument('-s', '--service', help='Check to run: retention or archives')
    parser.add_argument('-S', '--stanza', help='pgBackRest stanza')
    parser.add_argument('-F', '--retention-full', help='Minimum number of full backups')
    parser.add_argument('-A', '--retention-age', help='Maximum age of the latest backup (eg. 1d, 12h)')
    parser.add_argument('--repo-path', help='Repository path')
    parser.add_argument('--repo-host', help='Repository host, listed through SSH')
    parser.add_argument('--repo-host-user', help='SSH user on the repository host')
    parser.add_argument('--ignore-archived-since', help='Ignore archives modified within this interval')
    parser.add_argument('--latest-archive-age-alert', help='Maximum age of the latest archived WAL')
    parser.add_argument('--wal-segsize', help='WAL segment size (default: 16MB)')
    parser.add_argument('--list-archives', action='store_true', default=None,
                        help='Report every archived WAL')
    parser.add_argument('--pgbackrest-bin', help='pgbackrest executable')
    parser.add_argument('--pgbackrest-config', help='pgbackrest configuration file')
    parser.add_argument('--command-timeout', help='Timeout of external commands (default: 300s)')
    parser.add_argument('--log-file', help='Also write logs to this file')
    parser.add_argument('--human', action='store_true', help='Add human oriented details to the output')
    parser.add_argument('--debug', action='store_true', help='Debug logging')
    return parser


def render(service, result, human=False):
    """Format a CheckResult as a monitoring status line and its details."""
    line = f"PGBACKREST_{service.upper()} {result.severity.name}"
    if result.short_messages:
        line += f" - {', '.join(result.short_messages)}"
    if result.long_messages:
        line += f" | {' '.join(result.long_messages)}"

    lines = [line]
    if human:
        lines.extend(result.human_only_long_messages)
    return '\n'.join(lines)


def main(argv=None):
    """Run the requested check and return the process exit status."""
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug)

    overrides = {
        name: value for name, value in vars(args).items()
        if name not in ('env_file', 'human', 'debug') and value is not None
    }

    try:
        config = load_config(args.env_file, overrides)
        if config.log_file:
            setup_logging(config.log_file, debug=args.debug)

        check = CheckKind.from_name(config.service).build(config)
        context = CheckContext(
            status_provider=PgBackRestStatusProvider(config),
            now=time.time()
        )
        result = check.run(context)

    except ProbeError as e:
        logging.error(f"Check aborted: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return e.exit_status

    print(render(config.service, result, human=args.human))
    return result.severity.value


if __name__ == '__main__':
    sys.exit(main())
