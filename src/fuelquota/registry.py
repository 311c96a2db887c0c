"""Vehicle directory: read-only lookup of registered vehicles."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

from fuelquota.models.vehicle import Vehicle


class VehicleDirectory(Protocol):
    """Read-only view of the external vehicle registry."""

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None: ...

    async def list_vehicles(self) -> list[Vehicle]: ...


class InMemoryVehicleDirectory:
    """Directory backed by a fixed set of vehicles.

    Lookups are case-insensitive on the registration number.
    """

    def __init__(self, vehicles: Iterable[Vehicle] = ()) -> None:
        self._vehicles: dict[str, Vehicle] = {}
        for vehicle in vehicles:
            self._vehicles[vehicle.vehicle_id] = vehicle

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> InMemoryVehicleDirectory:
        """Build from raw registry records (camelCase or snake_case keys)."""
        return cls(Vehicle.model_validate(dict(record)) for record in records)

    @classmethod
    def from_json_file(cls, path: str | Path) -> InMemoryVehicleDirectory:
        """Load a JSON array of registry records."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a JSON array of vehicle records")
        return cls.from_records(data)

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        return self._vehicles.get(vehicle_id.strip().upper())

    async def list_vehicles(self) -> list[Vehicle]:
        return list(self._vehicles.values())

    def __len__(self) -> int:
        return len(self._vehicles)
