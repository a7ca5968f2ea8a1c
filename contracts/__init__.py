"""Contracts shared by the gateway, the reconciliation core and the reports.

The contracts package defines:
- normalized provider records (instances, reservations, specs, rates)
- cost-report and coverage result types
- the typed error hierarchy that aborts a command
- Protocol definitions for dependency injection
- the SDK client container and factory

Main exports:
- Instance, Reservation, InstanceTypeSpec, OnDemandRate, CallerIdentity
- CoverageResult, CostReport, ReservationElement
- ReconcilerError and its subclasses
- AwsClients, ClientFactory
"""

from contracts import errors
from contracts import models
from contracts import services as services_module

# Explicit re-exports to satisfy ruff F401
__all__ = [
    "AuthenticationError",
    "AwsClients",
    "CallerIdentity",
    "ClientFactory",
    "CostReport",
    "CoverageResult",
    "DataAssumptionViolation",
    "Instance",
    "InstanceProfile",
    "InstanceTypeSpec",
    "OnDemandRate",
    "ReconcilerError",
    "RecurringCharge",
    "Reservation",
    "ReservationElement",
    "ServiceError",
    "SingletonMappingError",
]

CallerIdentity = models.CallerIdentity
CostReport = models.CostReport
CoverageResult = models.CoverageResult
Instance = models.Instance
InstanceProfile = models.InstanceProfile
InstanceTypeSpec = models.InstanceTypeSpec
OnDemandRate = models.OnDemandRate
RecurringCharge = models.RecurringCharge
Reservation = models.Reservation
ReservationElement = models.ReservationElement

AwsClients = services_module.AwsClients
ClientFactory = services_module.ClientFactory

AuthenticationError = errors.AuthenticationError
DataAssumptionViolation = errors.DataAssumptionViolation
ReconcilerError = errors.ReconcilerError
ServiceError = errors.ServiceError
SingletonMappingError = errors.SingletonMappingError
