"""
Snapshot document schema.

A snapshot is the whole dataset serialized as one JSON object. Row field
names are the legacy column names so that export files written by earlier
releases still import. Those files carry no version field and are read as
format version 1; this release writes version 2.
"""

from __future__ import annotations

from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bikebuilders.domain.models import DEFAULT_REMINDER_DAYS, PaymentStatus, ServiceStatus

LEGACY_FORMAT_VERSION = 1
CURRENT_FORMAT_VERSION = 2


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CustomerRecord(_Record):
    customer_id: Optional[int] = Field(None, alias="CustomerID")
    name: str = Field(..., alias="Name")
    phone: Optional[str] = Field(None, alias="Phone")
    address: Optional[str] = Field(None, alias="Address")
    email: Optional[str] = Field(None, alias="Email")


class VehicleRecord(_Record):
    reg_number: str = Field(..., alias="RegNumber", min_length=1)
    customer_id: int = Field(..., alias="CustomerID")
    vehicle_name: Optional[str] = Field(None, alias="VehicleName")
    last_service_date: Optional[str] = Field(None, alias="LastServiceDate")
    last_reading: Optional[int] = Field(None, alias="LastReading")
    reminder_days: int = Field(DEFAULT_REMINDER_DAYS, alias="ReminderDays", ge=0)

    @field_validator("reminder_days", mode="before")
    @classmethod
    def default_missing_reminder(cls, v):
        return DEFAULT_REMINDER_DAYS if v is None else v


class ServiceRecord(_Record):
    service_log_id: Optional[int] = Field(None, alias="ServiceLogID")
    reg_number: str = Field(..., alias="RegNumber")
    timestamp_key: Optional[int] = Field(None, alias="TimestampKey")
    current_reading: Optional[int] = Field(None, alias="CurrentReading")
    total_amount: float = Field(0.0, alias="TotalAmount")
    paid_amount: float = Field(0.0, alias="PaidAmount")
    outstanding_balance: float = Field(0.0, alias="OutstandingBalance")
    payment_status: PaymentStatus = Field(PaymentStatus.PENDING, alias="PaymentStatus")
    status: ServiceStatus = Field(ServiceStatus.IN_PROGRESS, alias="Status")
    started_on: Optional[str] = Field(None, alias="StartedOn")
    completed_on: Optional[str] = Field(None, alias="CompletedOn")

    @field_validator("total_amount", "paid_amount", "outstanding_balance", mode="before")
    @classmethod
    def null_amount_is_zero(cls, v):
        return 0.0 if v is None else v


class ServicePartRecord(_Record):
    part_log_id: Optional[int] = Field(None, alias="PartLogID")
    service_log_id: int = Field(..., alias="ServiceLogID")
    part_name: str = Field(..., alias="PartName")
    amount: float = Field(..., alias="Amount")


class CommonServiceRecord(_Record):
    service_id: Optional[int] = Field(None, alias="ServiceID")
    service_name: str = Field(..., alias="ServiceName", min_length=1)
    default_amount: float = Field(..., alias="DefaultAmount")


class UserInfoRecord(_Record):
    name: Optional[str] = Field("", alias="Name")
    email: Optional[str] = Field("", alias="Email")
    phone_number: Optional[str] = Field("", alias="PhoneNumber")
    garage_name: Optional[str] = Field("", alias="GarageName")
    address: Optional[str] = Field("", alias="Address")


class Snapshot(_Record):
    """Point-in-time capture of every collection plus the garage profile."""

    format_version: int = Field(LEGACY_FORMAT_VERSION, alias="formatVersion")
    exported_at: Optional[str] = Field(None, alias="exportedAt")
    customers: List[CustomerRecord] = Field(default_factory=list)
    vehicles: List[VehicleRecord] = Field(default_factory=list)
    services: List[ServiceRecord] = Field(default_factory=list)
    service_parts: List[ServicePartRecord] = Field(default_factory=list, alias="serviceParts")
    common_services: List[CommonServiceRecord] = Field(default_factory=list, alias="commonServices")
    user_info: Optional[UserInfoRecord] = Field(None, alias="userInfo")

    @field_validator("format_version")
    @classmethod
    def supported_version(cls, v: int) -> int:
        if v < LEGACY_FORMAT_VERSION or v > CURRENT_FORMAT_VERSION:
            raise ValueError(
                f"unsupported snapshot format version {v} "
                f"(supported: {LEGACY_FORMAT_VERSION}-{CURRENT_FORMAT_VERSION})"
            )
        return v

    @field_validator(
        "customers", "vehicles", "services", "service_parts", "common_services",
        mode="before",
    )
    @classmethod
    def null_collection_is_empty(cls, v):
        return [] if v is None else v

    def counts(self) -> dict[str, int]:
        """Row counts per collection, for logging and CLI output."""
        return {
            "customers": len(self.customers),
            "vehicles": len(self.vehicles),
            "services": len(self.services),
            "serviceParts": len(self.service_parts),
            "commonServices": len(self.common_services),
        }
