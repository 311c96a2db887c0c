from __future__ import annotations

import pytest

from fuelquota.models.notification import NotificationKind
from fuelquota.models.outcomes import AlertLevel
from fuelquota.models.vehicle import FuelType
from fuelquota.thresholds import ThresholdMonitor, crossed

from tests._fakes import FakeGateway, make_vehicle


def test_each_threshold_fires_once_on_a_declining_balance() -> None:
    monitor = ThresholdMonitor()
    balances = [100.0, 85.0, 75.0, 65.0, 15.0, 5.0, 2.0]

    levels = [
        monitor.on_deduction(FuelType.PETROL, 100.0, before, after).level
        for before, after in zip(balances, balances[1:])
    ]

    assert levels == [
        AlertLevel.NONE,
        AlertLevel.NONE,
        AlertLevel.NONE,
        AlertLevel.LOW,
        AlertLevel.CRITICAL,
        AlertLevel.NONE,
    ]


def test_crossing_both_thresholds_reports_critical_only() -> None:
    alert = ThresholdMonitor().on_deduction(FuelType.DIESEL, 200.0, 180.0, 10.0)
    assert alert.level == AlertLevel.CRITICAL
    assert alert.threshold_pct == 10.0
    assert alert.remaining_pct == 5.0


def test_landing_exactly_on_threshold_fires() -> None:
    # 12 of 60 L is exactly 20%.
    alert = ThresholdMonitor().on_deduction(FuelType.PETROL, 60.0, 30.0, 12.0)
    assert alert.level == AlertLevel.LOW
    assert crossed(30.0, 6.0, 60.0, 10.0)


def test_starting_below_threshold_does_not_refire() -> None:
    alert = ThresholdMonitor().on_deduction(FuelType.PETROL, 60.0, 12.0, 11.0)
    assert not alert.fired
    assert alert.threshold_pct is None


def test_zero_allocation_never_fires() -> None:
    assert not ThresholdMonitor().on_deduction(FuelType.PETROL, 0.0, 0.0, 0.0).fired


def test_custom_thresholds() -> None:
    monitor = ThresholdMonitor(low_pct=50.0, critical_pct=25.0)
    assert monitor.on_deduction(FuelType.PETROL, 40.0, 30.0, 20.0).level == AlertLevel.LOW


def test_invalid_thresholds_rejected() -> None:
    with pytest.raises(ValueError):
        ThresholdMonitor(low_pct=10.0, critical_pct=20.0)


@pytest.mark.asyncio
async def test_notify_owner_sends_matching_kind() -> None:
    gateway = FakeGateway()
    monitor = ThresholdMonitor(gateway=gateway)
    vehicle = make_vehicle()

    alert = monitor.on_deduction(FuelType.PETROL, 60.0, 20.0, 5.0)
    assert await monitor.notify_owner(vehicle, FuelType.PETROL, alert, 5.0)

    kind, args = gateway.sent[0]
    assert kind == NotificationKind.CRITICAL_BALANCE
    assert args == {"vehicle_id": "WP-CAB-1234", "fuel_type": "petrol", "remaining": 5.0, "threshold_pct": 10.0}


@pytest.mark.asyncio
async def test_notify_owner_skips_when_nothing_fired() -> None:
    gateway = FakeGateway()
    monitor = ThresholdMonitor(gateway=gateway)

    alert = monitor.on_deduction(FuelType.PETROL, 60.0, 50.0, 40.0)

    assert not await monitor.notify_owner(make_vehicle(), FuelType.PETROL, alert, 40.0)
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_notify_owner_absorbs_gateway_errors() -> None:
    gateway = FakeGateway(raising_kinds={NotificationKind.LOW_BALANCE})
    monitor = ThresholdMonitor(gateway=gateway)

    alert = monitor.on_deduction(FuelType.PETROL, 60.0, 20.0, 11.0)

    assert alert.level == AlertLevel.LOW
    assert await monitor.notify_owner(make_vehicle(), FuelType.PETROL, alert, 11.0) is False
