"""Caller identity (STS GetCallerIdentity)."""

from __future__ import annotations

from commands.base import Command
from commands.context import CommandContext
from contracts.errors import AuthenticationError
from contracts.models import CallerIdentity
from reports.matrix import Matrix, MatrixOutput


class GciCommand(Command):
    name = "gci"

    def run(self, ctx: CommandContext, identity: CallerIdentity | None) -> MatrixOutput:
        if identity is None:
            raise AuthenticationError("caller identity is required to report it")
        matrix = Matrix(
            headers=["Account", "ARN", "User ID"],
            rows=[[identity.account, identity.arn, identity.user_id]],
        )
        return MatrixOutput(title="Caller identity", matrices=[matrix])
