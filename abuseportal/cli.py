"""Terminal front end for bulk abuse reporting.

Run:
  python -m abuseportal.cli validate --threat-type "IP Address" targets.txt
  MSRC_BEARER_TOKEN=... python -m abuseportal.cli submit --incident-type Spam \\
      --threat-type "IP Address" --name "Jane Doe" --email jane@example.com \\
      --notes "Spam relay" targets.txt
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import Config, load_config
from .reporter.base import INCIDENT_TYPES, THREAT_TYPES, TIME_ZONES, FormValidationError
from .reporter.builder import ReportForm, validate_form
from .reporter.msrc import MSRCAbuseReporter, PortalReportClient
from .reporter.submission import BulkSubmitter, InvalidEntryPolicy
from .reporter.targets import validate_targets

logger = logging.getLogger(__name__)

TOKEN_ENV = "MSRC_BEARER_TOKEN"


def _read_targets(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="abuseportal", description="Bulk abuse reporting tools.")
    sub = parser.add_subparsers(dest="command", required=True)

    threat_choices = [t.value for t in THREAT_TYPES]

    validate = sub.add_parser("validate", help="Check a target list against a threat type.")
    validate.add_argument("--threat-type", required=True, choices=threat_choices)
    validate.add_argument("file", help="Target list, one per line ('-' for stdin).")

    submit = sub.add_parser("submit", help="Submit one report per target line.")
    submit.add_argument("--incident-type", required=True, choices=[i.value for i in INCIDENT_TYPES])
    submit.add_argument("--threat-type", required=True, choices=threat_choices)
    submit.add_argument("--name", required=True, help="Reporter name.")
    submit.add_argument("--email", required=True, help="Reporter email.")
    submit.add_argument("--notes", required=True, help="Description sent with every report.")
    submit.add_argument("--time-zone", default=None, help=f"Time zone label (default {TIME_ZONES[0]}).")
    submit.add_argument("--destination-ip", default="")
    submit.add_argument("--destination-port", default="")
    submit.add_argument("--test", action="store_true", help="Mark reports as test submissions.")
    submit.add_argument("--anonymous", action="store_true", help="Ask upstream to anonymize the reporter.")
    submit.add_argument("--delay-ms", type=int, default=None, help="Pause between submissions.")
    submit.add_argument(
        "--send-invalid",
        action="store_true",
        help="Dispatch entries that fail local format checks instead of skipping them.",
    )
    submit.add_argument(
        "--portal-url",
        default="",
        help="Submit through a running portal's /api/report instead of calling upstream directly.",
    )
    submit.add_argument("file", help="Target list, one per line ('-' for stdin).")
    return parser


def cmd_validate(args: argparse.Namespace) -> int:
    result = validate_targets(_read_targets(args.file), args.threat_type)
    print(f"{result.valid_count} valid, {result.invalid_count} invalid ({result.total} total)")
    for entry in result.invalid_entries:
        print(f"  invalid: {entry}")
    return 1 if result.invalid_count else 0


async def cmd_submit(args: argparse.Namespace, config: Config) -> int:
    token = os.getenv(TOKEN_ENV, "").strip()
    if not token:
        print(f"{TOKEN_ENV} is not set", file=sys.stderr)
        return 2

    form = ReportForm(
        incident_type=args.incident_type,
        threat_type=args.threat_type,
        description=args.notes,
        reporter_name=args.name,
        reporter_email=args.email,
        time_zone=args.time_zone or (config.time_zones[0] if config.time_zones else "GMT"),
        anonymize=args.anonymous,
        test=args.test,
        destination_ip=args.destination_ip,
        destination_port=args.destination_port,
    )
    errors = validate_form(form)
    if errors:
        for error in errors:
            print(error, file=sys.stderr)
        return 2

    if args.portal_url:
        reporter = PortalReportClient(args.portal_url, token, timeout=config.upstream_timeout_seconds)
    else:
        reporter = MSRCAbuseReporter(
            token,
            endpoint=config.report_endpoint,
            timeout=config.upstream_timeout_seconds,
        )

    submitter = BulkSubmitter(
        reporter,
        delay_ms=config.submission_delay_ms if args.delay_ms is None else args.delay_ms,
        invalid_policy=InvalidEntryPolicy.SEND if args.send_invalid else InvalidEntryPolicy.SKIP,
    )
    submitter.log.subscribe(lambda entry: print(entry.format(), flush=True))

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except NotImplementedError:
        # Windows event loop does not support add_signal_handler.
        pass

    try:
        summary = await submitter.run(form, _read_targets(args.file), cancel_event=cancel_event)
    except FormValidationError as e:
        for error in e.errors:
            print(error, file=sys.stderr)
        return 2
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass
        await reporter.close()

    if summary.cancelled:
        return 130
    return 0 if summary.failed == 0 else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    if args.command == "validate":
        return cmd_validate(args)
    return asyncio.run(cmd_submit(args, config))


if __name__ == "__main__":
    sys.exit(main())
