"""Command contract.

Every command runs the same way: set the logging context, check the caller
identity (the first provider call of every command), then do its own work and
return a report for the renderer, or None when it has nothing to print.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from commands.context import CommandContext
from contracts.models import CallerIdentity
from infra.logging_config import StructuredLogger, clear_request_context, set_request_context
from reports.matrix import MatrixOutput

_LOG = StructuredLogger(__name__)


class Command(ABC):
    """Abstract command contract."""

    name: str = ""
    requires_identity: bool = True

    def execute(self, ctx: CommandContext) -> MatrixOutput | None:
        """Run the command; any :class:`contracts.errors.ReconcilerError` propagates."""
        set_request_context(command=self.name, region=ctx.region)
        try:
            identity = None
            if self.requires_identity:
                _LOG.info("checking_caller_identity")
                identity = ctx.gateway.get_caller_identity()
            return self.run(ctx, identity)
        finally:
            clear_request_context()

    @abstractmethod
    def run(self, ctx: CommandContext, identity: CallerIdentity | None) -> MatrixOutput | None:
        raise NotImplementedError
