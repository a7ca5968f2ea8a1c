"""
ri-reconciler CLI (flat-layout friendly).

Usage
-----
ri-recon res
ri-recon --region eu-west-1 res --show-unused
ri-recon --wide ec2
ri-recon --output json gci
ri-recon ssm i-0123456789abcdef0

Reports go to stdout, logs to stderr. Any provider or data error aborts the
command with exit status 1 and no partial report.
"""

from __future__ import annotations

import argparse
import sys
from typing import Callable, Dict, List, Optional

from commands import Ec2Command, GciCommand, ResCommand, SsmCommand
from commands.base import Command
from commands.context import CommandOptions, build_context
from contracts.errors import ReconcilerError
from infra.config import Settings, ValidationError, get_settings
from infra.logging_config import StructuredLogger, setup_logging
from reports.renderers import output_formats, render
from version import ENGINE_NAME, ENGINE_VERSION

_LOG = StructuredLogger(__name__)

EXIT_OK = 0
EXIT_ABORT = 1
EXIT_CONFIG = 2


def _res(args: argparse.Namespace) -> Command:
    return ResCommand(show_unused=args.show_unused)


def _ec2(args: argparse.Namespace) -> Command:  # pylint: disable=unused-argument
    return Ec2Command()


def _gci(args: argparse.Namespace) -> Command:  # pylint: disable=unused-argument
    return GciCommand()


def _ssm(args: argparse.Namespace) -> Command:
    return SsmCommand(instance_id=args.instance_id)


COMMANDS: Dict[str, Callable[[argparse.Namespace], Command]] = {
    "res": _res,
    "ec2": _ec2,
    "gci": _gci,
    "ssm": _ssm,
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ri-recon",
        description="Reconcile EC2 reserved instances against running capacity.",
    )
    p.add_argument("--version", action="version", version=f"{ENGINE_NAME} {ENGINE_VERSION}")
    p.add_argument("--region", default=None, help="AWS region (or AWS_REGION / AWS_DEFAULT_REGION env var).")
    p.add_argument(
        "--wide",
        action="store_true",
        default=None,
        help="Add SSM, AZ, type and spec columns to instance listings.",
    )
    p.add_argument(
        "--output",
        choices=output_formats(),
        default=None,
        help="Report format (or RIRECON_OUTPUT env var). Default: tabular",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("res", help="Active reservations with yearly cost and saving.")
    sp.add_argument(
        "--show-unused",
        action="store_true",
        help="Match running instances first and report only unused reservations.",
    )

    sub.add_parser("ec2", help="EC2 instance inventory.")
    sub.add_parser("gci", help="Caller identity (account, ARN, user id).")

    sp = sub.add_parser("ssm", help="Open a managed shell session (requires the aws CLI).")
    sp.add_argument("instance_id", help="Target instance id.")

    return p


def resolve_options(args: argparse.Namespace, settings: Settings) -> CommandOptions:
    """CLI flags win over settings."""
    return CommandOptions(
        region=args.region or settings.aws.region,
        output=args.output or settings.output.format,
        wide=bool(args.wide) if args.wide is not None else settings.output.wide,
        show_unused=bool(getattr(args, "show_unused", False)),
    )


def _abort(message: str) -> None:
    print("*** ABORT ***", file=sys.stderr)
    print(message, file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging()
        settings = get_settings()
    except ValidationError as exc:
        _abort(f"invalid configuration: {exc}")
        return EXIT_CONFIG

    options = resolve_options(args, settings)
    command = COMMANDS[args.cmd](args)
    try:
        ctx = build_context(settings, options)
        report = command.execute(ctx)
    except ReconcilerError as exc:
        _LOG.error("command_aborted", command=command.name, error=str(exc))
        _abort(str(exc))
        return EXIT_ABORT

    if report is not None:
        print(render(report, options.output), end="")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
