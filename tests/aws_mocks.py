"""Shared AWS test doubles for reconciler unit tests.

These mocks avoid boto3 client construction and cover:
- paginated API behavior (paginator and token loops)
- call counting, so cache amortization can be asserted
- deterministic Pricing API documents
- compact AwsClients / CommandContext construction
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

from botocore.exceptions import ClientError

from commands.context import CommandContext, CommandOptions, build_context
from contracts.services import AwsClients
from infra.config import Settings

PageProvider = list[Mapping[str, Any]] | Callable[[dict[str, Any]], Iterable[Mapping[str, Any]]]

REGION = "eu-west-1"
ACCOUNT_ID = "123456789012"


def make_client_error(
    operation_name: str,
    *,
    code: str = "AccessDeniedException",
    message: str = "Denied",
) -> ClientError:
    """Build a deterministic botocore ClientError payload for tests."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation_name)


class FakePaginator:
    """Simple paginator that supports static pages or kwargs-aware providers."""

    def __init__(self, pages: PageProvider) -> None:
        self._pages = pages

    def paginate(self, **kwargs: Any) -> Iterable[Mapping[str, Any]]:
        provider = self._pages
        if callable(provider):
            yield from provider(dict(kwargs))
            return
        yield from provider


class _CountingClient:
    """Records every operation call as ``(operation, kwargs)``."""

    def __init__(self, *, region: str, raise_on: str | None = None, raise_code: str = "AccessDeniedException") -> None:
        self.meta = SimpleNamespace(region_name=region)
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._raise_on = raise_on
        self._raise_code = raise_code

    def _record(self, operation_name: str, kwargs: Mapping[str, Any]) -> None:
        self.calls.append((operation_name, dict(kwargs)))
        if self._raise_on == operation_name:
            raise make_client_error(operation_name, code=self._raise_code)

    def count(self, operation_name: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation_name)


class FakeStsClient(_CountingClient):
    """STS fake returning a fixed identity."""

    def __init__(self, *, region: str = REGION, account: str = ACCOUNT_ID, **kwargs: Any) -> None:
        super().__init__(region=region, **kwargs)
        self._account = account

    def get_caller_identity(self) -> dict[str, Any]:
        self._record("get_caller_identity", {})
        return {
            "Account": self._account,
            "Arn": f"arn:aws:iam::{self._account}:user/alice",
            "UserId": "AIDAEXAMPLE",
        }


class FakeEc2Client(_CountingClient):
    """EC2 fake covering instances, reservations and the instance-type catalog.

    ``describe_instances`` is served through a paginator that honors the
    ``instance-state-name`` filter; the other operations are direct calls.
    """

    def __init__(
        self,
        *,
        region: str = REGION,
        instances: list[dict[str, Any]] | None = None,
        reservations: list[dict[str, Any]] | None = None,
        instance_types: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(region=region, **kwargs)
        self._instances = instances or []
        self._reservations = reservations or []
        self._instance_types = instance_types or []

    def get_paginator(self, op_name: str) -> FakePaginator:
        if op_name != "describe_instances":
            raise KeyError(f"FakeEc2Client has no paginator configured for {op_name}")
        return FakePaginator(self._instance_pages)

    def _instance_pages(self, kwargs: dict[str, Any]) -> Iterable[dict[str, Any]]:
        self._record("describe_instances", kwargs)
        states: list[str] | None = None
        for f in kwargs.get("Filters") or []:
            if f.get("Name") == "instance-state-name":
                states = list(f.get("Values") or [])
        ids = kwargs.get("InstanceIds")
        selected = [
            i
            for i in self._instances
            if (states is None or (i.get("State") or {}).get("Name") in states)
            and (not ids or i.get("InstanceId") in ids)
        ]
        # One instance per provider reservation, two reservations per page.
        for start in range(0, len(selected), 2):
            yield {"Reservations": [{"Instances": [i]} for i in selected[start : start + 2]]}

    def describe_reserved_instances(self, **kwargs: Any) -> dict[str, Any]:
        self._record("describe_reserved_instances", kwargs)
        return {"ReservedInstances": list(self._reservations)}

    def describe_instance_types(self, **kwargs: Any) -> dict[str, Any]:
        """Serve the catalog `MaxResults` at a time; the token is the next offset."""
        self._record("describe_instance_types", kwargs)
        size = int(kwargs.get("MaxResults") or 100)
        offset = int(kwargs.get("NextToken") or 0)
        page = self._instance_types[offset : offset + size]
        payload: dict[str, Any] = {"InstanceTypes": page}
        if offset + size < len(self._instance_types):
            payload["NextToken"] = str(offset + size)
        return payload


class FakeIamClient(_CountingClient):
    """IAM fake for instance profiles and attached role policies (Marker paging)."""

    def __init__(
        self,
        *,
        region: str = REGION,
        profiles: list[dict[str, Any]] | None = None,
        policies_by_role: Mapping[str, list[str]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(region=region, **kwargs)
        self._profiles = profiles or []
        self._policies_by_role = dict(policies_by_role or {})

    def list_instance_profiles(self, **kwargs: Any) -> dict[str, Any]:
        self._record("list_instance_profiles", kwargs)
        # Two pages: first profile, then the rest.
        if kwargs.get("Marker") == "p2":
            return {"InstanceProfiles": self._profiles[1:], "IsTruncated": False}
        if len(self._profiles) > 1:
            return {"InstanceProfiles": self._profiles[:1], "IsTruncated": True, "Marker": "p2"}
        return {"InstanceProfiles": list(self._profiles), "IsTruncated": False}

    def list_attached_role_policies(self, *, RoleName: str, **kwargs: Any) -> dict[str, Any]:
        self._record("list_attached_role_policies", {"RoleName": RoleName, **kwargs})
        names = self._policies_by_role.get(RoleName, [])
        return {
            "AttachedPolicies": [
                {"PolicyName": n, "PolicyArn": f"arn:aws:iam::aws:policy/{n}"} for n in names
            ],
            "IsTruncated": False,
        }


class FakePricingClient(_CountingClient):
    """Pricing fake keyed by the ``instanceType`` filter value."""

    def __init__(
        self,
        *,
        region: str = "us-east-1",
        price_lists: Mapping[str, list[Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(region=region, **kwargs)
        self._price_lists = dict(price_lists or {})

    def get_products(self, **kwargs: Any) -> dict[str, Any]:
        self._record("get_products", kwargs)
        instance_type = ""
        for filt in kwargs.get("Filters") or []:
            if filt.get("Field") == "instanceType":
                instance_type = str(filt.get("Value") or "")
        return {"PriceList": list(self._price_lists.get(instance_type, []))}


# -----------------------------------------------------------------------------
# Payload builders
# -----------------------------------------------------------------------------


def price_item(price: str, *, currency: str = "USD", terms: int = 1, dimensions: int = 1) -> str:
    """One PriceList entry (JSON string, as boto3 returns it)."""
    dims = {
        f"RATE{d}.JRTCKXETXF.6YS6EN2CT7": {"unit": "Hrs", "pricePerUnit": {currency: price}}
        for d in range(dimensions)
    }
    on_demand = {f"TERM{t}.JRTCKXETXF": {"priceDimensions": dims} for t in range(terms)}
    return json.dumps({"product": {"sku": "SKU"}, "terms": {"OnDemand": on_demand}})


def instance_payload(
    instance_id: str,
    instance_type: str = "m5.large",
    *,
    state: str = "running",
    az: str = "eu-west-1a",
    name: str | None = None,
    profile_arn: str | None = None,
    public_ip: str | None = None,
    private_ip: str | None = "10.0.0.1",
    tags: list[dict[str, str]] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "InstanceId": instance_id,
        "InstanceType": instance_type,
        "Placement": {"AvailabilityZone": az},
        "State": {"Name": state},
        "Tags": list(tags or ([{"Key": "Name", "Value": name}] if name else [])),
    }
    if public_ip:
        payload["PublicIpAddress"] = public_ip
    if private_ip:
        payload["PrivateIpAddress"] = private_ip
    if profile_arn:
        payload["IamInstanceProfile"] = {"Arn": profile_arn, "Id": "AIPA"}
    return payload


def reservation_payload(
    reservation_id: str,
    instance_type: str = "m5.large",
    *,
    count: int = 1,
    hourly: str | None = "0.06",
    frequency: str = "Hourly",
    end: datetime | None = None,
    duration: int = 31_536_000,
    scope: str = "Region",
    az: str | None = None,
    offering_type: str = "No Upfront",
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ReservedInstancesId": reservation_id,
        "InstanceType": instance_type,
        "InstanceCount": count,
        "End": end or datetime(2027, 1, 1, tzinfo=timezone.utc),
        "Duration": duration,
        "OfferingType": offering_type,
        "FixedPrice": 0.0,
        "Scope": scope,
        "State": "active",
        "RecurringCharges": [] if hourly is None else [{"Frequency": frequency, "Amount": float(hourly)}],
    }
    if az:
        payload["AvailabilityZone"] = az
    return payload


def instance_type_payload(instance_type: str, *, vcpus: int = 2, memory_mib: int = 8192) -> dict[str, Any]:
    return {
        "InstanceType": instance_type,
        "VCpuInfo": {"DefaultVCpus": vcpus},
        "MemoryInfo": {"SizeInMiB": memory_mib},
    }


def profile_payload(arn: str, *roles: str) -> dict[str, Any]:
    return {
        "Arn": arn,
        "InstanceProfileName": arn.rsplit("/", 1)[-1],
        "Roles": [{"RoleName": r} for r in roles],
    }


def make_clients(
    *,
    sts: Any | None = None,
    ec2: Any | None = None,
    iam: Any | None = None,
    pricing: Any | None = None,
    region: str = REGION,
) -> AwsClients:
    """AwsClients bag with empty fakes for anything not given."""
    return AwsClients(
        sts=sts or FakeStsClient(region=region),
        ec2=ec2 or FakeEc2Client(region=region),
        iam=iam or FakeIamClient(region=region),
        pricing=pricing or FakePricingClient(),
        region=region,
        pricing_region="us-east-1",
    )


def make_ctx(clients: AwsClients, **options: Any) -> CommandContext:
    """CommandContext over fakes with default settings (no env, no .env)."""
    settings = Settings.from_env(env={}, env_file=".missing.env")
    return build_context(settings, CommandOptions(region=clients.region, **options), clients=clients)
