"""Tests for the provider access layer: normalization and error translation."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from contracts.errors import AuthenticationError, DataAssumptionViolation, ServiceError
from services.aws_gateway import AwsGateway
from tests.aws_mocks import (
    FakeEc2Client,
    FakeIamClient,
    FakeStsClient,
    instance_payload,
    make_clients,
    profile_payload,
    reservation_payload,
)


def test_caller_identity_is_normalized() -> None:
    identity = AwsGateway(make_clients()).get_caller_identity()

    assert identity.account == "123456789012"
    assert identity.arn.endswith(":user/alice")
    assert identity.user_id == "AIDAEXAMPLE"


def test_caller_identity_failure_is_an_authentication_error() -> None:
    sts = FakeStsClient(raise_on="get_caller_identity", raise_code="InvalidClientTokenId")

    with pytest.raises(AuthenticationError, match="InvalidClientTokenId"):
        AwsGateway(make_clients(sts=sts)).get_caller_identity()


def test_list_instances_flattens_reservations_in_listing_order() -> None:
    ec2 = FakeEc2Client(
        instances=[
            instance_payload("i-1", name="web"),
            instance_payload("i-2", tags=[{"Key": "aws:eks:cluster-name", "Value": "prod"}]),
            instance_payload("i-3", tags=[]),
        ]
    )
    instances = AwsGateway(make_clients(ec2=ec2)).list_instances()

    assert [i.instance_id for i in instances] == ["i-1", "i-2", "i-3"]
    assert [i.name for i in instances] == ["web", "[EKS] prod", "Untitled"]


def test_list_instances_passes_state_filter() -> None:
    ec2 = FakeEc2Client(
        instances=[instance_payload("i-1"), instance_payload("i-2", state="stopped")]
    )
    instances = AwsGateway(make_clients(ec2=ec2)).list_instances(states=["running"])

    assert [i.instance_id for i in instances] == ["i-1"]
    _, kwargs = ec2.calls[0]
    assert kwargs["Filters"] == [{"Name": "instance-state-name", "Values": ["running"]}]


def test_instance_fields_are_normalized() -> None:
    profile = "arn:aws:iam::123456789012:instance-profile/app"
    payload = instance_payload("i-1", "c5.xlarge", az="eu-west-1c", public_ip="1.2.3.4", profile_arn=profile)
    payload["InstanceLifecycle"] = "spot"
    (instance,) = AwsGateway(make_clients(ec2=FakeEc2Client(instances=[payload]))).list_instances()

    assert instance.instance_type == "c5.xlarge"
    assert instance.availability_zone == "eu-west-1c"
    assert instance.public_ip == "1.2.3.4"
    assert instance.private_ip == "10.0.0.1"
    assert instance.profile_arn == profile
    assert instance.is_spot is True


def test_active_reservations_are_normalized() -> None:
    end = datetime(2027, 3, 1, tzinfo=timezone.utc)
    ec2 = FakeEc2Client(
        reservations=[
            reservation_payload("r-regional", count=2, hourly="0.05", end=end),
            reservation_payload("r-zonal", "t3.micro", scope="Availability Zone", az="eu-west-1a"),
        ]
    )
    gateway = AwsGateway(make_clients(ec2=ec2))
    regional, zonal = gateway.list_active_reservations()

    assert regional.count == 2
    assert regional.is_regional is True
    assert regional.end == end
    assert regional.recurring_charges[0].frequency == "Hourly"
    assert regional.recurring_charges[0].amount == Decimal("0.05")
    assert zonal.availability_zone == "eu-west-1a"
    _, kwargs = ec2.calls[0]
    assert kwargs["Filters"] == [{"Name": "state", "Values": ["active"]}]


def test_reservation_end_accepts_iso_strings() -> None:
    ec2 = FakeEc2Client(reservations=[reservation_payload("r-1")])
    ec2._reservations[0]["End"] = "2027-01-01T00:00:00Z"  # pylint: disable=protected-access

    (reservation,) = AwsGateway(make_clients(ec2=ec2)).list_active_reservations()
    assert reservation.end == datetime(2027, 1, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("end", "message"),
    [
        (None, "no End timestamp"),
        ("", "no End timestamp"),
        ("not-a-date", "invalid End timestamp"),
    ],
)
def test_reservation_without_a_valid_end_is_a_data_violation(end: object, message: str) -> None:
    ec2 = FakeEc2Client(reservations=[reservation_payload("r-1")])
    if end is None:
        del ec2._reservations[0]["End"]  # pylint: disable=protected-access
    else:
        ec2._reservations[0]["End"] = end  # pylint: disable=protected-access

    with pytest.raises(DataAssumptionViolation, match=message):
        AwsGateway(make_clients(ec2=ec2)).list_active_reservations()


def test_instance_profiles_follow_marker_pages() -> None:
    iam = FakeIamClient(
        profiles=[
            profile_payload("arn:aws:iam::1:instance-profile/a", "role-a"),
            profile_payload("arn:aws:iam::1:instance-profile/b", "role-b", "role-c"),
        ]
    )
    profiles = AwsGateway(make_clients(iam=iam)).list_instance_profiles()

    assert [p.name for p in profiles] == ["a", "b"]
    assert profiles[1].role_names == ("role-b", "role-c")
    assert [kwargs.get("Marker") for _, kwargs in iam.calls] == [None, "p2"]


@pytest.mark.parametrize(
    ("client_kwargs", "call", "operation"),
    [
        ({"ec2": FakeEc2Client(raise_on="describe_instances")}, lambda g: g.list_instances(), "DescribeInstances"),
        (
            {"ec2": FakeEc2Client(raise_on="describe_reserved_instances")},
            lambda g: g.list_active_reservations(),
            "DescribeReservedInstances",
        ),
        (
            {"ec2": FakeEc2Client(raise_on="describe_instance_types")},
            lambda g: list(g.iter_instance_types(page_size=100)),
            "DescribeInstanceTypes",
        ),
        (
            {"iam": FakeIamClient(raise_on="list_attached_role_policies")},
            lambda g: g.list_attached_policy_names("role"),
            "ListAttachedRolePolicies",
        ),
    ],
)
def test_provider_failures_become_service_errors(client_kwargs, call, operation) -> None:
    gateway = AwsGateway(make_clients(**client_kwargs))

    with pytest.raises(ServiceError) as excinfo:
        call(gateway)
    assert excinfo.value.operation == operation
    assert "AccessDeniedException: Denied" in str(excinfo.value)
