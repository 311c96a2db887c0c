from __future__ import annotations

import json
from pathlib import Path

import pytest

from fuelquota.models.vehicle import FuelType, VehicleClass
from fuelquota.registry import InMemoryVehicleDirectory


@pytest.mark.asyncio
async def test_from_json_file(tmp_path: Path) -> None:
    path = tmp_path / "vehicles.json"
    path.write_text(
        json.dumps(
            [
                {"vehicleId": "WP-CAB-1234", "vehicleClass": "CAR", "fuelType": "PETROL", "engineDisplacement": 1998},
                {"vehicle_id": "np-lb-9999", "vehicle_type": "lorry", "fuel_type": "diesel"},
            ]
        ),
        encoding="utf-8",
    )

    directory = InMemoryVehicleDirectory.from_json_file(path)

    assert len(directory) == 2
    lorry = await directory.get_vehicle(" np-lb-9999 ")
    assert lorry is not None
    assert lorry.vehicle_class == VehicleClass.LORRY
    assert lorry.fuel_type == FuelType.DIESEL
    assert await directory.get_vehicle("missing") is None


def test_from_json_file_rejects_non_array(tmp_path: Path) -> None:
    path = tmp_path / "vehicles.json"
    path.write_text('{"vehicleId": "X"}', encoding="utf-8")

    with pytest.raises(ValueError):
        InMemoryVehicleDirectory.from_json_file(path)
