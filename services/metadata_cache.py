"""
services/metadata_cache.py

Process-scoped metadata cache
=============================

Amortizes expensive provider lookups within one command invocation:

- instance-type hardware specs (whole catalog fetched on first use)
- instance-profile remote-session (SSM) eligibility, keyed by profile ARN
- on-demand hourly rates, keyed by instance type

The cache is an owned object: a command builds one at start and passes it to
every operation that needs it. Nothing is shared between invocations and
nothing is persisted. Entries are never invalidated during a command.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from contracts.errors import DataAssumptionViolation
from contracts.models import Instance, InstanceProfile, InstanceTypeSpec, OnDemandRate
from services.aws_gateway import AwsGateway
from services.pricing_service import PricingService

_LOGGER = logging.getLogger(__name__)

DEFAULT_SSM_POLICY_NAME = "AmazonSSMManagedInstanceCore"
DEFAULT_TYPE_PAGE_SIZE = 100


class MetadataCache:
    """Lazily populated lookup tables backed by provider queries."""

    def __init__(
        self,
        *,
        gateway: AwsGateway,
        pricing: PricingService,
        region: str,
        ssm_policy_name: str = DEFAULT_SSM_POLICY_NAME,
        type_page_size: int = DEFAULT_TYPE_PAGE_SIZE,
    ) -> None:
        self._gateway = gateway
        self._pricing = pricing
        self._region = region
        self._ssm_policy_name = ssm_policy_name
        self._type_page_size = int(type_page_size)

        self._specs: Dict[str, InstanceTypeSpec] = {}
        self._specs_loaded = False
        self._profiles: Dict[str, InstanceProfile] = {}
        self._profiles_loaded = False
        self._ssm_by_profile: Dict[str, bool] = {}
        self._rates: Dict[str, OnDemandRate] = {}

    @property
    def region(self) -> str:
        return self._region

    # -------------------------
    # Instance-type specs
    # -------------------------

    def get_instance_type_spec(self, instance_type: str) -> Optional[InstanceTypeSpec]:
        """Return the spec of `instance_type`, or None if the catalog lacks it."""
        if not self._specs_loaded:
            self._load_instance_types()
        return self._specs.get(instance_type)

    def _load_instance_types(self) -> None:
        _LOGGER.info("Filling instance type cache", extra={"region": self._region})
        for instance_type, spec in self._gateway.iter_instance_types(page_size=self._type_page_size):
            self._specs[instance_type] = spec
        self._specs_loaded = True
        _LOGGER.debug("Instance type cache filled", extra={"count": len(self._specs)})

    # -------------------------
    # Remote-session eligibility
    # -------------------------

    def get_profile_ssm_capable(self, instance: Instance) -> bool:
        """Return True when the role behind the instance's profile carries the SSM policy.

        Eligibility is a property of the profile's role, so results are cached
        by profile ARN and shared by every instance using that profile.
        """
        profile_arn = instance.profile_arn
        if not profile_arn:
            return False

        if not self._profiles_loaded:
            self._load_instance_profiles()

        cached = self._ssm_by_profile.get(profile_arn)
        if cached is not None:
            return cached

        role_name = self._sole_role_name(profile_arn)
        _LOGGER.info("Getting IAM role information", extra={"profile_arn": profile_arn, "role": role_name})
        policies = self._gateway.list_attached_policy_names(role_name)
        capable = self._ssm_policy_name in policies
        self._ssm_by_profile[profile_arn] = capable
        return capable

    def _load_instance_profiles(self) -> None:
        _LOGGER.info("Filling instance profile cache")
        for profile in self._gateway.list_instance_profiles():
            self._profiles[profile.arn] = profile
        self._profiles_loaded = True

    def _sole_role_name(self, profile_arn: str) -> str:
        profile = self._profiles.get(profile_arn)
        if profile is None:
            raise DataAssumptionViolation(f"instance profile {profile_arn} is not listed in this account")
        if len(profile.role_names) != 1:
            raise DataAssumptionViolation(
                f"instance profile {profile_arn} has {len(profile.role_names)} roles attached, expected exactly one"
            )
        return profile.role_names[0]

    # -------------------------
    # On-demand pricing
    # -------------------------

    def get_on_demand_rate(self, instance_type: str) -> OnDemandRate:
        """Return the on-demand rate of `instance_type` in the operating region."""
        cached = self._rates.get(instance_type)
        if cached is not None:
            return cached

        _LOGGER.info("Getting pricing", extra={"instance_type": instance_type, "region": self._region})
        rate = self._pricing.ec2_instance_hour(instance_type=instance_type, region_code=self._region)
        self._rates[instance_type] = rate
        return rate
