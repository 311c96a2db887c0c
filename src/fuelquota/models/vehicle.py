"""Vehicle model.

Vehicles are owned by the external registry; the quota engine only reads
them.  Field aliases accept the registry's camelCase record keys.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from fuelquota.models._base import QuotaBaseModel, QuotaEnum, safe_float


class FuelType(QuotaEnum):
    PETROL = "petrol"
    DIESEL = "diesel"


class VehicleClass(QuotaEnum):
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    THREE_WHEELER = "three_wheeler"
    BUS = "bus"
    LORRY = "lorry"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value: object) -> VehicleClass:
        member = super()._missing_(value)
        if isinstance(member, VehicleClass):
            return member
        return cls.OTHER


class OwnerContact(QuotaBaseModel):
    """Where owner notifications go."""

    account_id: str = Field(default="", validation_alias=AliasChoices("accountId", "account_id", "ownerId", "id"))
    phone: str | None = Field(default=None, validation_alias=AliasChoices("phone", "phoneNumber", "phone_number"))
    email: str | None = Field(default=None, validation_alias=AliasChoices("email"))

    @field_validator("account_id", mode="before")
    @classmethod
    def _coerce_account_id(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("phone", "email", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class Vehicle(QuotaBaseModel):
    """A registered vehicle as seen by the quota engine."""

    vehicle_id: str = Field(
        validation_alias=AliasChoices("vehicleId", "vehicle_id", "registrationNumber", "registration_number"),
    )
    """Registration number (upper-cased)."""
    vehicle_class: VehicleClass = Field(
        default=VehicleClass.OTHER,
        validation_alias=AliasChoices("vehicleClass", "vehicle_class", "vehicleType", "vehicle_type"),
    )
    fuel_type: FuelType = Field(validation_alias=AliasChoices("fuelType", "fuel_type"))
    engine_displacement: float | None = Field(
        default=None,
        validation_alias=AliasChoices("engineDisplacement", "engine_displacement", "engineCapacity", "engine_capacity"),
    )
    """Engine displacement in cc, when known."""
    owner: OwnerContact = Field(default_factory=OwnerContact)

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def _normalize_vehicle_id(cls, value: Any) -> str:
        text = str(value or "").strip().upper()
        if not text:
            raise ValueError("vehicle_id must be non-empty")
        return text

    @field_validator("vehicle_class", mode="before")
    @classmethod
    def _parse_vehicle_class(cls, value: Any) -> VehicleClass:
        if value is None:
            return VehicleClass.OTHER
        return VehicleClass(value)

    @field_validator("fuel_type", mode="before")
    @classmethod
    def _parse_fuel_type(cls, value: Any) -> FuelType:
        return FuelType(value)

    @field_validator("engine_displacement", mode="before")
    @classmethod
    def _coerce_displacement(cls, value: Any) -> float | None:
        return safe_float(value)
