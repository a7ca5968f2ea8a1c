"""
services/aws_gateway.py

Provider access layer
=====================

Every AWS call the reconciler makes goes through :class:`AwsGateway`. The
gateway:
- issues calls strictly one at a time (no fan-out, no retries)
- normalizes boto3 payloads into :mod:`contracts.models` types
- converts SDK failures into typed errors (:class:`ServiceError`, or
  :class:`AuthenticationError` for the identity check)

Minimal IAM permissions:
- sts:GetCallerIdentity
- ec2:DescribeInstances, ec2:DescribeReservedInstances, ec2:DescribeInstanceTypes
- iam:ListInstanceProfiles, iam:ListAttachedRolePolicies
- pricing:GetProducts
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from contracts.errors import AuthenticationError, DataAssumptionViolation, ServiceError
from contracts.models import (
    CallerIdentity,
    Instance,
    InstanceProfile,
    InstanceTypeSpec,
    RecurringCharge,
    Reservation,
    derive_instance_name,
)
from contracts.services import AwsClients
from reconcile._common import paginate_items, safe_int, tag_map, to_decimal, utc

_LOGGER = logging.getLogger(__name__)

_MIB_PER_GIB = 1024


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {}) if isinstance(exc.response, Mapping) else {}
        code = str(err.get("Code") or "")
        message = str(err.get("Message") or "")
        if code and message:
            return f"{code}: {message}"
        return message or code or str(exc)
    return str(exc)


@contextmanager
def _provider_call(operation: str) -> Iterator[None]:
    """Wrap one provider operation, translating SDK failures to ServiceError."""
    try:
        yield
    except (ClientError, BotoCoreError) as exc:
        raise ServiceError(operation, _error_message(exc)) from exc


def _instance_from_payload(payload: Mapping[str, Any]) -> Instance:
    placement = payload.get("Placement") or {}
    state = payload.get("State") or {}
    profile = payload.get("IamInstanceProfile") or {}
    return Instance(
        instance_id=str(payload.get("InstanceId") or ""),
        instance_type=str(payload.get("InstanceType") or ""),
        availability_zone=str(placement.get("AvailabilityZone") or ""),
        state=str(state.get("Name") or ""),
        name=derive_instance_name(tag_map(payload.get("Tags"))),
        public_ip=payload.get("PublicIpAddress") or None,
        private_ip=payload.get("PrivateIpAddress") or None,
        profile_arn=profile.get("Arn") or None,
        is_spot=str(payload.get("InstanceLifecycle") or "").lower() == "spot",
    )


def _reservation_end(payload: Mapping[str, Any]) -> datetime:
    raw = payload.get("End")
    if isinstance(raw, datetime):
        return raw
    if raw is None or not str(raw).strip():
        raise DataAssumptionViolation(f"reservation {payload.get('ReservedInstancesId')} has no End timestamp")
    try:
        return datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise DataAssumptionViolation(
            f"reservation {payload.get('ReservedInstancesId')} has an invalid End timestamp: {raw!r}"
        ) from exc


def _reservation_from_payload(payload: Mapping[str, Any]) -> Reservation:
    scope = str(payload.get("Scope") or "").strip().lower()
    az = str(payload.get("AvailabilityZone") or "").strip()
    end = _reservation_end(payload)
    charges = tuple(
        RecurringCharge(
            frequency=str(charge.get("Frequency") or ""),
            amount=to_decimal(charge.get("Amount")),
        )
        for charge in payload.get("RecurringCharges") or []
        if isinstance(charge, Mapping)
    )
    return Reservation(
        reservation_id=str(payload.get("ReservedInstancesId") or ""),
        instance_type=str(payload.get("InstanceType") or ""),
        count=max(0, safe_int(payload.get("InstanceCount"))),
        end=utc(end) or end,
        duration_seconds=safe_int(payload.get("Duration")),
        offering_type=str(payload.get("OfferingType") or ""),
        fixed_price=to_decimal(payload.get("FixedPrice")),
        availability_zone=az if (az and scope != "region") else None,
        recurring_charges=charges,
    )


def _spec_from_payload(payload: Mapping[str, Any]) -> InstanceTypeSpec:
    vcpu = payload.get("VCpuInfo") or {}
    memory = payload.get("MemoryInfo") or {}
    return InstanceTypeSpec(
        vcpus=safe_int(vcpu.get("DefaultVCpus")),
        memory_gib=safe_int(memory.get("SizeInMiB")) // _MIB_PER_GIB,
    )


class AwsGateway:
    """Sequential, typed access to the AWS APIs used by the reconciler."""

    def __init__(self, clients: AwsClients) -> None:
        self._clients = clients

    @property
    def region(self) -> str:
        return self._clients.region

    def get_caller_identity(self) -> CallerIdentity:
        """Return the STS identity; any failure is an :class:`AuthenticationError`."""
        try:
            resp = self._clients.sts.get_caller_identity()
        except (ClientError, BotoCoreError) as exc:
            raise AuthenticationError(
                "Ensure your AWS credentials are set correctly in the environment. "
                f"The underlying error is: {_error_message(exc)}"
            ) from exc
        return CallerIdentity(
            account=str(resp.get("Account") or ""),
            arn=str(resp.get("Arn") or ""),
            user_id=str(resp.get("UserId") or ""),
        )

    def list_instances(
        self,
        *,
        states: Sequence[str] | None = None,
        instance_ids: Sequence[str] | None = None,
    ) -> list[Instance]:
        """Return instances in provider listing order."""
        params: dict[str, Any] = {}
        if states:
            params["Filters"] = [{"Name": "instance-state-name", "Values": list(states)}]
        if instance_ids:
            params["InstanceIds"] = list(instance_ids)

        instances: list[Instance] = []
        with _provider_call("DescribeInstances"):
            for reservation in paginate_items(self._clients.ec2, "describe_instances", "Reservations", params=params):
                for payload in reservation.get("Instances", []) or []:
                    instances.append(_instance_from_payload(payload))
        _LOGGER.debug("Listed instances", extra={"count": len(instances), "region": self.region})
        return instances

    def list_active_reservations(self) -> list[Reservation]:
        """Return active reservations in provider listing order."""
        with _provider_call("DescribeReservedInstances"):
            resp = self._clients.ec2.describe_reserved_instances(
                Filters=[{"Name": "state", "Values": ["active"]}],
            )
        reservations = [
            _reservation_from_payload(row)
            for row in resp.get("ReservedInstances", []) or []
            if isinstance(row, Mapping)
        ]
        _LOGGER.debug("Listed reservations", extra={"count": len(reservations), "region": self.region})
        return reservations

    def iter_instance_types(self, *, page_size: int) -> Iterator[tuple[str, InstanceTypeSpec]]:
        """Yield ``(instance_type, spec)`` for the whole catalog, page by page."""
        with _provider_call("DescribeInstanceTypes"):
            for payload in paginate_items(
                self._clients.ec2,
                "describe_instance_types",
                "InstanceTypes",
                params={"MaxResults": int(page_size)},
                use_paginator=False,
            ):
                instance_type = str(payload.get("InstanceType") or "")
                if instance_type:
                    yield instance_type, _spec_from_payload(payload)

    def list_instance_profiles(self) -> list[InstanceProfile]:
        """Return every instance profile of the account."""
        profiles: list[InstanceProfile] = []
        with _provider_call("ListInstanceProfiles"):
            for payload in paginate_items(
                self._clients.iam,
                "list_instance_profiles",
                "InstanceProfiles",
                request_token_key="Marker",
                response_token_keys=("Marker",),
            ):
                profiles.append(
                    InstanceProfile(
                        arn=str(payload.get("Arn") or ""),
                        name=str(payload.get("InstanceProfileName") or ""),
                        role_names=tuple(
                            str(role.get("RoleName") or "") for role in payload.get("Roles", []) or []
                        ),
                    )
                )
        return profiles

    def list_attached_policy_names(self, role_name: str) -> list[str]:
        """Return the managed policy names attached to `role_name`."""
        with _provider_call("ListAttachedRolePolicies"):
            return [
                str(policy.get("PolicyName") or "")
                for policy in paginate_items(
                    self._clients.iam,
                    "list_attached_role_policies",
                    "AttachedPolicies",
                    params={"RoleName": role_name},
                    request_token_key="Marker",
                    response_token_keys=("Marker",),
                )
            ]

    def get_products(self, *, service_code: str, filters: Sequence[Mapping[str, str]]) -> list[Any]:
        """Return every raw PriceList entry matching `filters` (all TERM_MATCH)."""
        api_filters = [
            {"Type": "TERM_MATCH", "Field": str(f["Field"]), "Value": str(f["Value"])}
            for f in filters
        ]
        with _provider_call("GetProducts"):
            return list(
                paginate_items(
                    self._clients.pricing,
                    "get_products",
                    "PriceList",
                    params={"ServiceCode": service_code, "Filters": api_filters},
                )
            )
