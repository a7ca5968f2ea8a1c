"""Instance inventory.

Read-only listing of EC2 instances, optionally restricted to an explicit
instance-id allow-list and optionally enriched ("wide") with remote-session
eligibility, availability zone, type and hardware spec from the shared
:class:`services.metadata_cache.MetadataCache`.

The reservation report reuses :class:`InventoryCollaborator` to build its
covered / uncovered sub-reports.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass

from commands.base import Command
from commands.context import CommandContext
from contracts.interfaces import InstanceMetadataSource
from contracts.models import CallerIdentity, Instance, InstanceTypeSpec
from reports.matrix import Matrix, MatrixOutput
from services.aws_gateway import AwsGateway

BASE_HEADERS = ["Instance ID", "Name", "State", "Public IP", "Private IP"]
WIDE_HEADERS = ["SSM", "AZ", "Type", "Spec"]


@dataclass(frozen=True)
class InventoryRow:
    instance: Instance
    ssm: bool | None = None
    spec: InstanceTypeSpec | None = None

    def values(self, *, wide: bool) -> list[object]:
        i = self.instance
        cells: list[object] = [i.instance_id, i.name, i.state, i.public_ip, i.private_ip]
        if wide:
            cells.extend([self.ssm, i.availability_zone, i.instance_type, self.spec])
        return cells


def collect_inventory(
    instances: Sequence[Instance],
    *,
    metadata: InstanceMetadataSource,
    wide: bool,
    allow_ids: Collection[str] | None = None,
) -> list[InventoryRow]:
    """Filter by `allow_ids` (when given), enrich when `wide`, sort by name.

    Only instances that survive the filter are enriched, so an allow-list
    never triggers lookups for instances it excludes.
    """
    rows: list[InventoryRow] = []
    for instance in instances:
        if allow_ids is not None and instance.instance_id not in allow_ids:
            continue
        if wide:
            rows.append(
                InventoryRow(
                    instance=instance,
                    ssm=metadata.get_profile_ssm_capable(instance),
                    spec=metadata.get_instance_type_spec(instance.instance_type),
                )
            )
        else:
            rows.append(InventoryRow(instance=instance))
    rows.sort(key=lambda r: (r.instance.name, r.instance.instance_id))
    return rows


def inventory_matrix(rows: Sequence[InventoryRow], *, wide: bool, title: str | None = None) -> Matrix:
    headers = BASE_HEADERS + (WIDE_HEADERS if wide else [])
    return Matrix(
        headers=list(headers),
        rows=[row.values(wide=wide) for row in rows],
        title=title,
        aggregates=[("Instances", len(rows))],
    )


class InventoryCollaborator:
    """Builds inventory matrices from the gateway and the shared cache."""

    def __init__(self, *, gateway: AwsGateway, metadata: InstanceMetadataSource) -> None:
        self._gateway = gateway
        self._metadata = metadata

    def matrix(
        self,
        *,
        wide: bool,
        title: str | None = None,
        allow_ids: Collection[str] | None = None,
        instances: Sequence[Instance] | None = None,
    ) -> Matrix:
        """Return an inventory matrix.

        `instances` may be passed when the caller already listed them;
        otherwise every instance of the region is listed.
        """
        listed = list(instances) if instances is not None else self._gateway.list_instances()
        rows = collect_inventory(listed, metadata=self._metadata, wide=wide, allow_ids=allow_ids)
        return inventory_matrix(rows, wide=wide, title=title)


class Ec2Command(Command):
    """List the EC2 inventory of the region."""

    name = "ec2"

    def run(self, ctx: CommandContext, identity: CallerIdentity | None) -> MatrixOutput:
        collaborator = InventoryCollaborator(gateway=ctx.gateway, metadata=ctx.cache)
        matrix = collaborator.matrix(wide=ctx.options.wide)
        if not matrix.rows:
            matrix.notes.append("No instances found.")
        return MatrixOutput(title=f"EC2 instances ({ctx.region})", matrices=[matrix])
