"""Reservation cost report.

Pipeline:
  active reservations
    -> (with --show-unused) running instances -> greedy matching -> residual reservations
    -> cost model (on-demand rates through the metadata cache)
    -> report assembly (+ covered / uncovered inventory sub-reports)

Any failure anywhere aborts the command before a report is assembled.
"""

from __future__ import annotations

from dataclasses import dataclass

from commands.base import Command
from commands.context import CommandContext
from commands.inventory import InventoryCollaborator
from contracts.models import CallerIdentity, CostReport, CoverageResult, Instance
from infra.logging_config import StructuredLogger
from reconcile.cost_model import build_cost_report, format_money
from reconcile.matcher import match_reservations
from reports.matrix import Matrix, MatrixOutput

_LOG = StructuredLogger(__name__)

RESERVATION_HEADERS = [
    "Type",
    "Qty",
    "AZ",
    "Expires",
    "Days Left",
    "Term (y)",
    "Offering",
    "Hourly",
    "ODM Hourly",
    "Yearly Reserved",
    "Yearly ODM",
    "Yearly Saving",
]
REGIONAL_SCOPE_LABEL = "(regional)"


@dataclass(frozen=True)
class Reconciliation:
    """Everything the report is assembled from."""

    cost: CostReport
    coverage: CoverageResult | None = None
    instances: tuple[Instance, ...] = ()


def reconcile(ctx: CommandContext, *, show_unused: bool) -> Reconciliation:
    """Fetch, match and price; returns nothing partial."""
    reservations = ctx.gateway.list_active_reservations()
    _LOG.info("reservations_fetched", count=len(reservations))

    coverage: CoverageResult | None = None
    instances: list[Instance] = []
    to_price = reservations
    if show_unused:
        instances = ctx.gateway.list_instances(states=["running"])
        _LOG.info("instances_fetched", count=len(instances))
        coverage = match_reservations(instances, reservations)
        to_price = coverage.residual

    cost = build_cost_report(to_price, rates=ctx.cache, currency=ctx.settings.reconcile.currency)
    return Reconciliation(cost=cost, coverage=coverage, instances=tuple(instances))


class ReportAssembler:
    """Turns a :class:`Reconciliation` into a renderable report."""

    def __init__(self, *, inventory: InventoryCollaborator, region: str) -> None:
        self._inventory = inventory
        self._region = region

    def reservation_matrix(self, cost: CostReport, *, unused_only: bool) -> Matrix:
        title = "Unused reservations" if unused_only else "Active reservations"
        matrix = Matrix(headers=list(RESERVATION_HEADERS), title=title)
        for e in cost.elements:
            matrix.add_row(
                [
                    e.instance_type,
                    e.quantity,
                    e.availability_zone or REGIONAL_SCOPE_LABEL,
                    e.expires,
                    e.days_remaining,
                    e.term_years,
                    e.offering_type,
                    format_money(e.recurring_hourly),
                    format_money(e.on_demand_hourly),
                    format_money(e.reserved_yearly_cost),
                    format_money(e.on_demand_yearly_cost),
                    format_money(e.saving_yearly),
                ]
            )
        matrix.aggregates = [
            ("Reservations", cost.total_count),
            (f"Yearly reserved ({cost.currency})", format_money(cost.total_reserved_yearly)),
            (f"Yearly on-demand ({cost.currency})", format_money(cost.total_on_demand_yearly)),
            (f"Yearly saving ({cost.currency})", format_money(cost.total_saving)),
        ]
        matrix.notes = [
            f"On-demand baseline: Linux, shared tenancy, {self._region}.",
            "Yearly figures use 8760 hours; terms use 365-day years.",
        ]
        return matrix

    def assemble(self, result: Reconciliation) -> MatrixOutput:
        coverage = result.coverage
        matrices = [self.reservation_matrix(result.cost, unused_only=coverage is not None)]
        if coverage is not None:
            matrices.append(
                self._inventory.matrix(
                    wide=True,
                    title="Covered instances",
                    allow_ids=coverage.covered_ids,
                    instances=result.instances,
                )
            )
            matrices.append(
                self._inventory.matrix(
                    wide=True,
                    title="Uncovered instances",
                    allow_ids=coverage.uncovered_ids,
                    instances=result.instances,
                )
            )
        return MatrixOutput(title=f"Reservation costs ({self._region})", matrices=matrices)


class ResCommand(Command):
    """Reservation utilization and savings report."""

    name = "res"

    def __init__(self, *, show_unused: bool = False) -> None:
        self._show_unused = show_unused

    def run(self, ctx: CommandContext, identity: CallerIdentity | None) -> MatrixOutput:
        result = reconcile(ctx, show_unused=self._show_unused)
        assembler = ReportAssembler(
            inventory=InventoryCollaborator(gateway=ctx.gateway, metadata=ctx.cache),
            region=ctx.region,
        )
        return assembler.assemble(result)
