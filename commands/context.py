"""Per-invocation wiring.

A :class:`CommandContext` is built once at command start and owns every
stateful collaborator of that invocation: the SDK clients, the gateway and
the metadata cache. It is dropped when the command ends; nothing survives
into the next invocation.
"""

from __future__ import annotations

from dataclasses import dataclass

from contracts.services import AwsClients, ClientFactory
from infra.aws_config import build_sdk_config
from infra.config import Settings
from services.aws_gateway import AwsGateway
from services.metadata_cache import MetadataCache
from services.pricing_service import PricingFilters, PricingService


@dataclass(frozen=True)
class CommandOptions:
    """User-facing switches shared by every command."""

    region: str
    output: str = "tabular"
    wide: bool = False
    show_unused: bool = False


@dataclass(frozen=True)
class CommandContext:
    """Everything one command invocation needs."""

    settings: Settings
    options: CommandOptions
    gateway: AwsGateway
    cache: MetadataCache

    @property
    def region(self) -> str:
        return self.options.region


def build_context(settings: Settings, options: CommandOptions, *, clients: AwsClients | None = None) -> CommandContext:
    """Wire clients, gateway, pricing and cache for one invocation.

    `clients` lets tests inject fakes; by default real boto3 clients are
    created for ``options.region`` (pricing in ``settings.aws.pricing_region``).
    """
    if clients is None:
        factory = ClientFactory(sdk_config=build_sdk_config(settings))
        clients = factory.build(region=options.region, pricing_region=settings.aws.pricing_region)

    rcfg = settings.reconcile
    gateway = AwsGateway(clients)
    pricing = PricingService(
        gateway=gateway,
        filters=PricingFilters(
            operating_system=rcfg.operating_system,
            tenancy=rcfg.tenancy,
            capacity_status=rcfg.capacity_status,
            preinstalled_sw=rcfg.preinstalled_sw,
        ),
        currency=rcfg.currency,
    )
    cache = MetadataCache(
        gateway=gateway,
        pricing=pricing,
        region=options.region,
        ssm_policy_name=rcfg.ssm_policy_name,
        type_page_size=rcfg.instance_type_page_size,
    )
    return CommandContext(settings=settings, options=options, gateway=gateway, cache=cache)
