from __future__ import annotations

import pytest

from fuelquota.models.vehicle import FuelType, Vehicle, VehicleClass
from fuelquota.registry import InMemoryVehicleDirectory
from tests._fakes import FakeGateway, MutableClock, make_vehicle


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def fleet() -> list[Vehicle]:
    return [
        make_vehicle("WP-CAB-1234"),
        make_vehicle("WP-CAR-2000", displacement=2000.0),
        make_vehicle("WP-QA-1111", VehicleClass.MOTORCYCLE, displacement=125.0),
        make_vehicle("WP-NB-5555", VehicleClass.BUS, FuelType.DIESEL, displacement=None),
        make_vehicle("WP-LA-7777", VehicleClass.LORRY, FuelType.DIESEL, displacement=None, phone=None),
    ]


@pytest.fixture
def directory(fleet: list[Vehicle]) -> InMemoryVehicleDirectory:
    return InMemoryVehicleDirectory(fleet)
