"""Managed shell session.

Delegates to the AWS CLI (``aws ssm start-session``), which owns the
session-manager plugin handshake and the interactive terminal.
"""

from __future__ import annotations

import shutil
import subprocess
from typing import List, Optional

from commands.base import Command
from commands.context import CommandContext
from contracts.errors import ServiceError
from contracts.models import CallerIdentity
from infra.logging_config import StructuredLogger

_LOG = StructuredLogger(__name__)

AWS_CLI = "aws"
OPERATION = "ssm:StartSession"


def session_command(instance_id: str, *, region: str) -> List[str]:
    return [AWS_CLI, "ssm", "start-session", "--target", instance_id, "--region", region]


class SsmCommand(Command):
    name = "ssm"

    def __init__(self, *, instance_id: str) -> None:
        self._instance_id = instance_id

    def run(self, ctx: CommandContext, identity: Optional[CallerIdentity]) -> None:
        if shutil.which(AWS_CLI) is None:
            raise ServiceError(OPERATION, "the aws CLI is not installed or not on PATH")

        cmd = session_command(self._instance_id, region=ctx.region)
        _LOG.info("starting_session", instance_id=self._instance_id)
        try:
            subprocess.run(cmd, check=True)
        except subprocess.CalledProcessError as exc:
            raise ServiceError(OPERATION, f"session exited with status {exc.returncode}") from exc
        except OSError as exc:
            raise ServiceError(OPERATION, str(exc)) from exc
        return None
