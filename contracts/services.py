"""
contracts/services.py

Client container + factory (DI-friendly).

Goals:
- One command owns one set of SDK clients, built once at command start.
- The pricing client is bound to the pricing-hub region, every other client
  to the operating region.
- Tests inject fakes by building :class:`AwsClients` directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError

from contracts.errors import ServiceError
from contracts.interfaces import (
    EC2ClientProtocol,
    IAMClientProtocol,
    PricingClientProtocol,
    STSClientProtocol,
)


@dataclass(frozen=True)
class AwsClients:
    """
    Bag of SDK clients used by :class:`services.aws_gateway.AwsGateway`.

    `region` is the operating region; `pricing_region` is where the Pricing
    API is queried from (the catalog is not published in every region).
    """
    sts: STSClientProtocol
    ec2: EC2ClientProtocol
    iam: IAMClientProtocol
    pricing: PricingClientProtocol
    region: str = ""
    pricing_region: str = ""


class ClientFactory:
    """
    Creates AWS SDK clients for one command invocation.

    Usage:
      session = boto3.Session()
      factory = ClientFactory(session=session, sdk_config=build_sdk_config())
      clients = factory.build(region="eu-west-3", pricing_region="us-east-1")
    """

    def __init__(self, *, session: boto3.Session | None = None, sdk_config: Config | None = None) -> None:
        self._session = session
        self._sdk_config = sdk_config

    def _client(self, service: str, *, region: str | None) -> Any:
        if self._session is None:
            self._session = boto3.Session()
        kwargs: dict[str, Any] = {}
        if region:
            kwargs["region_name"] = region
        if self._sdk_config is not None:
            kwargs["config"] = self._sdk_config
        return self._session.client(service, **kwargs)

    def build(self, *, region: str, pricing_region: str) -> AwsClients:
        """Return clients for `region` plus a pricing client in `pricing_region`."""
        reg = str(region or "").strip()
        if not reg:
            raise ValueError("region must be a non-empty string")
        hub = str(pricing_region or "").strip() or reg

        try:
            return AwsClients(
                sts=self._client("sts", region=reg),
                ec2=self._client("ec2", region=reg),
                # IAM is global; the region only selects the endpoint partition.
                iam=self._client("iam", region=reg),
                pricing=self._client("pricing", region=hub),
                region=reg,
                pricing_region=hub,
            )
        except BotoCoreError as exc:
            raise ServiceError("client setup", str(exc)) from exc
