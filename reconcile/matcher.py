"""
reconcile/matcher.py

Greedy allocation of running instances to reservation capacity.

Design notes
------------
- Strict first-fit: instances are visited in provider listing order; each one
  takes one unit from the first reservation of the same instance type that
  still has capacity. Decisions are never revisited.
- Only the instance type is compared. Availability zone, platform and expiry
  do not influence the choice.
- Result determinism follows the provider's listing order, which is not
  sorted here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from contracts.models import CoverageResult, Instance, Reservation

_LOGGER = logging.getLogger(__name__)


def _first_available(reservations: Sequence[Reservation], instance_type: str) -> Reservation | None:
    for reservation in reservations:
        if reservation.instance_type == instance_type and reservation.count > 0:
            return reservation
    return None


def match_reservations(instances: Iterable[Instance], reservations: list[Reservation]) -> CoverageResult:
    """Allocate `instances` against `reservations`, decrementing counts in place.

    Returns covered and uncovered instance ids plus the residual reservations
    (those whose count is still above zero).
    """
    covered: set[str] = set()
    uncovered: set[str] = set()

    for instance in instances:
        reservation = _first_available(reservations, instance.instance_type)
        if reservation is None:
            uncovered.add(instance.instance_id)
            continue
        reservation.count -= 1
        covered.add(instance.instance_id)

    residual = [r for r in reservations if r.count > 0]
    _LOGGER.debug(
        "Matched instances to reservations",
        extra={"covered": len(covered), "uncovered": len(uncovered), "residual": len(residual)},
    )
    return CoverageResult(
        covered_ids=frozenset(covered),
        uncovered_ids=frozenset(uncovered),
        residual=residual,
    )
