"""
services/pricing_service.py

AWS Pricing Service (strict, uncached)
======================================

Goals:
- Resolve the public on-demand hourly price of one EC2 instance type
- Fail loudly: an ambiguous or missing price is a data error, never a silent None
- Keep interface small; caching is owned by :class:`services.metadata_cache.MetadataCache`

Notes:
- AWS Pricing is served from a few hub regions only (``us-east-1`` in the
  commercial partition), so the client is bound to the hub region while the
  ``regionCode`` filter selects the operating region.
- A PriceList entry is a JSON document whose OnDemand term and price
  dimension are keyed by opaque, service-generated ids:

    terms.OnDemand.<offer-term-id>.priceDimensions.<rate-code>.pricePerUnit.USD

  Both ids are resolved with :func:`singleton_value`.

Minimal IAM permission:
- pricing:GetProducts
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from contracts.errors import DataAssumptionViolation, SingletonMappingError
from contracts.models import OnDemandRate
from services.aws_gateway import AwsGateway

_LOGGER = logging.getLogger(__name__)

EC2_SERVICE_CODE = "AmazonEC2"
COMPUTE_PRODUCT_FAMILY = "Compute Instance"


def singleton_value(mapping: Any, *, path: str) -> Any:
    """Return the only value of a single-entry mapping.

    Raises :class:`SingletonMappingError` when `mapping` is not a mapping or
    does not hold exactly one entry. `path` names the location for the error.
    """
    if not isinstance(mapping, Mapping):
        raise SingletonMappingError(path, 0)
    if len(mapping) != 1:
        raise SingletonMappingError(path, len(mapping))
    return next(iter(mapping.values()))


@dataclass(frozen=True)
class PricingFilters:
    """Product attributes pinning one Linux, shared-tenancy on-demand SKU."""

    operating_system: str = "Linux"
    tenancy: str = "Shared"
    capacity_status: str = "Used"
    preinstalled_sw: str = "NA"

    def for_instance_type(self, *, instance_type: str, region_code: str) -> List[Dict[str, str]]:
        return [
            {"Field": "instanceType", "Value": str(instance_type)},
            {"Field": "regionCode", "Value": str(region_code)},
            {"Field": "tenancy", "Value": self.tenancy},
            {"Field": "preInstalledSw", "Value": self.preinstalled_sw},
            {"Field": "productFamily", "Value": COMPUTE_PRODUCT_FAMILY},
            {"Field": "operatingSystem", "Value": self.operating_system},
            {"Field": "capacitystatus", "Value": self.capacity_status},
        ]


def parse_on_demand_price(item: Any, *, currency: str = "USD") -> Decimal:
    """Extract the on-demand unit price from one PriceList entry.

    `item` is the raw entry (JSON string or already-decoded dict).
    """
    if isinstance(item, str):
        try:
            data = json.loads(item)
        except json.JSONDecodeError as exc:
            raise DataAssumptionViolation(f"pricing entry is not valid JSON: {exc}") from exc
    else:
        data = item
    if not isinstance(data, Mapping):
        raise DataAssumptionViolation("pricing entry is not a JSON object")

    terms = data.get("terms") or {}
    on_demand = terms.get("OnDemand") if isinstance(terms, Mapping) else None
    term = singleton_value(on_demand, path="terms.OnDemand")
    dimensions = term.get("priceDimensions") if isinstance(term, Mapping) else None
    dimension = singleton_value(dimensions, path="terms.OnDemand.*.priceDimensions")

    price_per_unit = dimension.get("pricePerUnit") if isinstance(dimension, Mapping) else None
    raw = price_per_unit.get(currency) if isinstance(price_per_unit, Mapping) else None
    if raw is None:
        raise DataAssumptionViolation(f"pricing entry has no pricePerUnit.{currency}")
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise DataAssumptionViolation(f"pricing entry has a non-numeric price: {raw!r}") from exc


class PricingService:
    """
    Resolves EC2 public on-demand hourly prices through the Pricing API.

    Every call is a fresh query; callers are expected to memoize.
    """

    def __init__(
        self,
        *,
        gateway: AwsGateway,
        filters: PricingFilters | None = None,
        currency: str = "USD",
    ) -> None:
        self._gateway = gateway
        self._filters = filters or PricingFilters()
        self._currency = currency

    def ec2_instance_hour(self, *, instance_type: str, region_code: str) -> OnDemandRate:
        """Return the on-demand hourly rate; exactly one product must match."""
        price_list = self._gateway.get_products(
            service_code=EC2_SERVICE_CODE,
            filters=self._filters.for_instance_type(instance_type=instance_type, region_code=region_code),
        )
        if len(price_list) != 1:
            raise DataAssumptionViolation(
                f"expected exactly one on-demand price for {instance_type} in {region_code}, "
                f"found {len(price_list)}"
            )

        price = parse_on_demand_price(price_list[0], currency=self._currency)
        _LOGGER.debug(
            "Resolved on-demand price",
            extra={"instance_type": instance_type, "region_code": region_code, "price": str(price)},
        )
        return OnDemandRate(
            instance_type=instance_type,
            region_code=region_code,
            price_per_hour=price,
            currency=self._currency,
        )
