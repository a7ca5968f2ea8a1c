"""
reconcile/cost_model.py

Prices reservation groups against on-demand rates and aggregates the fleet.

Signals per reservation element (all reservations of one instance type and
AZ, regional ones sharing a single row):
1) yearly reserved spend (recurring hourly charges only)
2) yearly on-demand spend for the same capacity
3) yearly saving (unclamped; negative when the reservation costs more)

Design notes
------------
- Decimal arithmetic end to end; rounding happens only in :func:`format_money`.
- A year is 8760 hours for cost and 31_536_000 seconds for terms (365 days,
  leap years ignored).
- ``total_saving`` is derived from the two totals (see
  :class:`contracts.models.CostReport`).
- Any unsupported recurring-charge frequency aborts the whole calculation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from contracts.errors import DataAssumptionViolation
from contracts.interfaces import RateSource
from contracts.models import HOURLY_FREQUENCY, CostReport, Reservation, ReservationElement
from reconcile._common import now_utc, utc

_LOGGER = logging.getLogger(__name__)

HOURS_PER_YEAR = 8760
SECONDS_PER_YEAR = 31_536_000
_SECONDS_PER_DAY = 86_400
_CENT = Decimal("0.01")


def recurring_hourly(reservation: Reservation) -> Decimal:
    """Sum the hourly recurring charges of `reservation`."""
    total = Decimal("0")
    for charge in reservation.recurring_charges:
        if charge.frequency != HOURLY_FREQUENCY:
            raise DataAssumptionViolation(
                f"reservation {reservation.reservation_id or reservation.instance_type} has an "
                f"unsupported recurring charge frequency: {charge.frequency!r}"
            )
        total += charge.amount
    return total


def days_remaining(end: datetime, *, now: datetime) -> int:
    """Whole days from `now` until `end`, truncated toward zero (negative once expired)."""
    seconds = ((utc(end) or end) - (utc(now) or now)).total_seconds()
    return int(seconds / _SECONDS_PER_DAY)


def term_years(duration_seconds: int) -> int:
    return int(duration_seconds) // SECONDS_PER_YEAR


def yearly(hourly: Decimal, count: int) -> Decimal:
    return hourly * HOURS_PER_YEAR * int(count)


def format_money(value: Decimal) -> str:
    """Two decimals, half-up."""
    return str(Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def price_reservation(reservation: Reservation, *, rates: RateSource, now: datetime) -> ReservationElement:
    """Build the priced row of one reservation."""
    hourly = recurring_hourly(reservation)
    rate = rates.get_on_demand_rate(reservation.instance_type)

    reserved_yearly = yearly(hourly, reservation.count)
    on_demand_yearly = yearly(rate.price_per_hour, reservation.count)

    return ReservationElement(
        reservation_id=reservation.reservation_id,
        instance_type=reservation.instance_type,
        quantity=reservation.count,
        availability_zone=reservation.availability_zone,
        expires=reservation.end,
        days_remaining=days_remaining(reservation.end, now=now),
        term_years=term_years(reservation.duration_seconds),
        offering_type=reservation.offering_type,
        fixed_price=reservation.fixed_price,
        recurring_hourly=hourly,
        on_demand_hourly=rate.price_per_hour,
        reserved_yearly_cost=reserved_yearly,
        on_demand_yearly_cost=on_demand_yearly,
        saving_yearly=on_demand_yearly - reserved_yearly,
    )


def merge_elements(elements: Sequence[ReservationElement]) -> ReservationElement:
    """Fold the priced rows of one (instance type, AZ) group into a single row.

    Quantities, fixed prices and yearly figures are summed. The row shows the
    earliest expiry and the shortest term of the group. The hourly reserved
    rate is count-weighted, so mixed rates keep the summed yearly cost exact.
    """
    if len(elements) == 1:
        return elements[0]
    first = elements[0]
    quantity = sum(e.quantity for e in elements)
    reserved = sum((e.reserved_yearly_cost for e in elements), Decimal("0"))
    on_demand = sum((e.on_demand_yearly_cost for e in elements), Decimal("0"))
    soonest = min(elements, key=lambda e: e.expires)
    offerings = list(dict.fromkeys(e.offering_type for e in elements))
    hourly = reserved / (HOURS_PER_YEAR * quantity) if quantity else first.recurring_hourly

    return ReservationElement(
        reservation_id=", ".join(e.reservation_id for e in elements),
        instance_type=first.instance_type,
        quantity=quantity,
        availability_zone=first.availability_zone,
        expires=soonest.expires,
        days_remaining=soonest.days_remaining,
        term_years=min(e.term_years for e in elements),
        offering_type=", ".join(offerings),
        fixed_price=sum((e.fixed_price for e in elements), Decimal("0")),
        recurring_hourly=hourly,
        on_demand_hourly=first.on_demand_hourly,
        reserved_yearly_cost=reserved,
        on_demand_yearly_cost=on_demand,
        saving_yearly=on_demand - reserved,
    )


def group_elements(elements: Iterable[ReservationElement]) -> tuple[ReservationElement, ...]:
    """One row per (instance type, availability zone), in first-seen order."""
    groups: dict[tuple[str, Optional[str]], list[ReservationElement]] = {}
    for element in elements:
        groups.setdefault((element.instance_type, element.availability_zone), []).append(element)
    return tuple(merge_elements(members) for members in groups.values())


def build_cost_report(
    reservations: Iterable[Reservation],
    *,
    rates: RateSource,
    now: Optional[datetime] = None,
    currency: str = "USD",
) -> CostReport:
    """Price every reservation, group the rows and aggregate fleet totals.

    Rates are requested one reservation at a time, in input order. Regional
    reservations share the ``None`` zone, so they group by type alone.
    """
    at = now or now_utc()
    priced = [price_reservation(r, rates=rates, now=at) for r in reservations]
    elements = group_elements(priced)

    total_reserved = sum((e.reserved_yearly_cost for e in elements), Decimal("0"))
    total_on_demand = sum((e.on_demand_yearly_cost for e in elements), Decimal("0"))

    _LOGGER.debug(
        "Priced reservations",
        extra={"reservations": len(priced), "elements": len(elements), "total_reserved": str(total_reserved)},
    )
    return CostReport(
        elements=elements,
        total_reserved_yearly=total_reserved,
        total_on_demand_yearly=total_on_demand,
        currency=currency,
    )
