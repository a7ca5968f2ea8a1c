"""In-memory data model of the reconciler.

Provider payloads are normalized into these types once, in
:mod:`services.aws_gateway`. Everything downstream (cache, matcher, cost
model, reports) works on these types only.

Money is carried as :class:`decimal.Decimal` end to end; rounding happens at
display time (see :func:`reconcile.cost_model.format_money`).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

HOURLY_FREQUENCY = "Hourly"
UNTITLED_INSTANCE_NAME = "Untitled"
_NAME_TAG = "Name"
_EKS_CLUSTER_TAG = "aws:eks:cluster-name"


def derive_instance_name(tags: Mapping[str, str]) -> str:
    """Return a display name from instance tags.

    The ``Name`` tag wins; otherwise the EKS cluster-name tag is used with an
    ``[EKS]`` prefix; otherwise ``Untitled``.
    """
    name = str(tags.get(_NAME_TAG) or "").strip()
    if name:
        return name
    cluster = str(tags.get(_EKS_CLUSTER_TAG) or "").strip()
    if cluster:
        return f"[EKS] {cluster}"
    return UNTITLED_INSTANCE_NAME


@dataclass(frozen=True)
class Instance:
    """Snapshot of one EC2 instance, fetched once per command."""

    instance_id: str
    instance_type: str
    availability_zone: str
    state: str
    name: str = UNTITLED_INSTANCE_NAME
    public_ip: str | None = None
    private_ip: str | None = None
    profile_arn: str | None = None
    is_spot: bool = False


@dataclass(frozen=True)
class RecurringCharge:
    """A recurring reservation charge. Only ``Hourly`` is supported downstream."""

    frequency: str
    amount: Decimal


@dataclass
class Reservation:
    """An active reservation group.

    ``count`` is the remaining (unallocated) capacity. It is mutated in place
    by the matcher only and never goes below zero.
    """

    reservation_id: str
    instance_type: str
    count: int
    end: datetime
    duration_seconds: int
    offering_type: str
    fixed_price: Decimal = Decimal("0")
    availability_zone: str | None = None
    recurring_charges: tuple[RecurringCharge, ...] = ()

    @property
    def is_regional(self) -> bool:
        return self.availability_zone is None


@dataclass(frozen=True)
class InstanceTypeSpec:
    """Hardware spec of an instance type."""

    vcpus: int
    memory_gib: int

    def __str__(self) -> str:
        return f"{self.vcpus}/{self.memory_gib}"


@dataclass(frozen=True)
class InstanceProfile:
    """IAM instance profile and the role(s) attached to it."""

    arn: str
    name: str = ""
    role_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class OnDemandRate:
    """On-demand hourly price of one instance type in one region."""

    instance_type: str
    region_code: str
    price_per_hour: Decimal
    currency: str = "USD"


@dataclass(frozen=True)
class CallerIdentity:
    """STS caller identity."""

    account: str
    arn: str
    user_id: str


@dataclass(frozen=True)
class CoverageResult:
    """Outcome of matching running instances against reservation capacity."""

    covered_ids: frozenset[str]
    uncovered_ids: frozenset[str]
    residual: list[Reservation] = field(default_factory=list)


@dataclass(frozen=True)
class ReservationElement:
    """One priced row: every reservation of an instance type in one AZ (or regional)."""

    reservation_id: str
    instance_type: str
    quantity: int
    availability_zone: str | None
    expires: datetime
    days_remaining: int
    term_years: int
    offering_type: str
    fixed_price: Decimal
    recurring_hourly: Decimal
    on_demand_hourly: Decimal
    reserved_yearly_cost: Decimal
    on_demand_yearly_cost: Decimal
    saving_yearly: Decimal


@dataclass(frozen=True)
class CostReport:
    """Priced reservation rows plus fleet aggregates."""

    elements: tuple[ReservationElement, ...]
    total_reserved_yearly: Decimal
    total_on_demand_yearly: Decimal
    currency: str = "USD"

    @property
    def total_saving(self) -> Decimal:
        # Always derived from the two totals, never accumulated per row.
        return self.total_on_demand_yearly - self.total_reserved_yearly

    @property
    def total_count(self) -> int:
        return sum(element.quantity for element in self.elements)
