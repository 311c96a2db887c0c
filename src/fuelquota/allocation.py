"""Monthly allowance table.

Pure and stateless; safe to call from any number of coroutines.
"""

from __future__ import annotations

from fuelquota._constants import (
    DIESEL_CAR_QUOTA,
    DIESEL_COMMERCIAL_QUOTA,
    PETROL_CAR_QUOTA,
    PETROL_LARGE_ENGINE_BONUS,
    PETROL_LARGE_ENGINE_CC,
    PETROL_MOTORCYCLE_QUOTA,
    PETROL_THREE_WHEELER_QUOTA,
)
from fuelquota.models.vehicle import FuelType, Vehicle, VehicleClass

_PETROL_TABLE: dict[VehicleClass, float] = {
    VehicleClass.CAR: PETROL_CAR_QUOTA,
    VehicleClass.MOTORCYCLE: PETROL_MOTORCYCLE_QUOTA,
    VehicleClass.THREE_WHEELER: PETROL_THREE_WHEELER_QUOTA,
}

_DIESEL_TABLE: dict[VehicleClass, float] = {
    VehicleClass.CAR: DIESEL_CAR_QUOTA,
    VehicleClass.BUS: DIESEL_COMMERCIAL_QUOTA,
    VehicleClass.LORRY: DIESEL_COMMERCIAL_QUOTA,
}


def allocate(
    vehicle_class: VehicleClass | str,
    fuel_type: FuelType | str,
    displacement: float | None = None,
) -> float:
    """Return the liters granted for one period.

    Classes without an entry for the fuel type get that fuel's car
    baseline.  Petrol cars above 1800 cc receive an extra 20 L.

    Raises :class:`ValueError` for an unknown fuel type.
    """
    vehicle_class = VehicleClass(vehicle_class)
    fuel_type = FuelType(fuel_type)

    if fuel_type == FuelType.PETROL:
        amount = _PETROL_TABLE.get(vehicle_class, PETROL_CAR_QUOTA)
        if vehicle_class == VehicleClass.CAR and displacement is not None and displacement > PETROL_LARGE_ENGINE_CC:
            amount += PETROL_LARGE_ENGINE_BONUS
        return amount

    return _DIESEL_TABLE.get(vehicle_class, DIESEL_CAR_QUOTA)


def allocate_for(vehicle: Vehicle, fuel_type: FuelType | None = None) -> float:
    """Allowance for *vehicle*, optionally for a fuel type other than its own."""
    return allocate(vehicle.vehicle_class, fuel_type or vehicle.fuel_type, vehicle.engine_displacement)
