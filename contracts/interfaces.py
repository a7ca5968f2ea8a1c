"""
Protocol definitions for dependency injection.

This module defines explicit interfaces (Protocols) for the collaborators of
the reconciliation core, enabling:
- Easy fakes in tests (no boto3 client construction)
- Clear contracts between cache, cost model and reports

Usage:
    from contracts.interfaces import RateSource, SpecSource

    # In production, MetadataCache satisfies all three lookup protocols
    # In tests, a small dict-backed fake is enough
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from contracts.models import Instance, InstanceTypeSpec, OnDemandRate

# -----------------------------------------------------------------------------
# AWS Service Protocols
# -----------------------------------------------------------------------------

@runtime_checkable
class EC2ClientProtocol(Protocol):
    """Protocol for the EC2 calls made by the gateway."""

    def describe_instances(self, *, Filters: list[dict[str, Any]] | None = None,
                           InstanceIds: list[str] | None = None,
                           MaxResults: int | None = None,
                           NextToken: str | None = None) -> dict[str, Any]:
        """Describe EC2 instances."""
        ...

    def describe_reserved_instances(self, *, Filters: list[dict[str, Any]] | None = None) -> dict[str, Any]:
        """Describe reserved instances."""
        ...

    def describe_instance_types(self, *, MaxResults: int | None = None,
                                NextToken: str | None = None) -> dict[str, Any]:
        """Describe the instance-type catalog."""
        ...


@runtime_checkable
class IAMClientProtocol(Protocol):
    """Protocol for the IAM calls made by the gateway."""

    def list_instance_profiles(self, *, Marker: str | None = None) -> dict[str, Any]:
        """List instance profiles."""
        ...

    def list_attached_role_policies(self, *, RoleName: str,
                                    Marker: str | None = None) -> dict[str, Any]:
        """List managed policies attached to a role."""
        ...


@runtime_checkable
class PricingClientProtocol(Protocol):
    """Protocol for Pricing API interactions."""

    def get_products(self, *, ServiceCode: str, Filters: list[dict[str, str]],
                     NextToken: str | None = None) -> dict[str, Any]:
        """Query the price list."""
        ...


@runtime_checkable
class STSClientProtocol(Protocol):
    """Protocol for STS interactions."""

    def get_caller_identity(self) -> dict[str, Any]:
        """Return the caller identity."""
        ...


# -----------------------------------------------------------------------------
# Metadata lookup Protocols
# -----------------------------------------------------------------------------

class RateSource(Protocol):
    """Anything that resolves on-demand hourly rates by instance type."""

    def get_on_demand_rate(self, instance_type: str) -> OnDemandRate:
        ...


class SpecSource(Protocol):
    """Anything that resolves instance-type hardware specs."""

    def get_instance_type_spec(self, instance_type: str) -> InstanceTypeSpec | None:
        ...


class SessionEligibilitySource(Protocol):
    """Anything that tells whether an instance accepts managed shell sessions."""

    def get_profile_ssm_capable(self, instance: Instance) -> bool:
        ...


class InstanceMetadataSource(SpecSource, SessionEligibilitySource, Protocol):
    """Spec and session-eligibility lookups used by the inventory."""

