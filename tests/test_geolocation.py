import asyncio

import pytest

from medshare.config.settings import LocationSettings
from medshare.domain.models import Coordinate
from medshare.location.provider import (
    GeolocationProvider,
    LocationTimeout,
    LocationUnsupported,
    PermissionDenied,
    PositionOptions,
    PositionUnavailable,
    build_provider,
    locate_or_none,
)

HERE = Coordinate(lat=37.7749, lng=-122.4194)


class _CountingSource:
    def __init__(self, coordinate: Coordinate = HERE):
        self.coordinate = coordinate
        self.calls = 0

    async def current_position(self, options: PositionOptions) -> Coordinate:
        self.calls += 1
        return self.coordinate


class _FailingSource:
    def __init__(self, exc: Exception):
        self.exc = exc

    async def current_position(self, options: PositionOptions) -> Coordinate:
        raise self.exc


class _SlowSource:
    async def current_position(self, options: PositionOptions) -> Coordinate:
        await asyncio.sleep(1)
        return HERE


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_returns_position_from_source():
    provider = GeolocationProvider(_CountingSource())
    assert asyncio.run(provider.request_location()) == HERE


def test_recent_fix_is_reused_within_maximum_age():
    source = _CountingSource()
    clock = _Clock()
    provider = GeolocationProvider(source, PositionOptions(maximum_age_seconds=60), clock=clock)

    asyncio.run(provider.request_location())
    clock.now += 30
    asyncio.run(provider.request_location())
    assert source.calls == 1

    clock.now += 31
    asyncio.run(provider.request_location())
    assert source.calls == 2


def test_missing_source_is_unsupported():
    with pytest.raises(LocationUnsupported):
        asyncio.run(GeolocationProvider(None).request_location())


def test_slow_source_times_out():
    provider = GeolocationProvider(_SlowSource(), PositionOptions(timeout_seconds=0.01))
    with pytest.raises(LocationTimeout):
        asyncio.run(provider.request_location())


@pytest.mark.parametrize("exc", [PermissionDenied("denied"), PositionUnavailable("no fix")])
def test_platform_errors_propagate(exc):
    with pytest.raises(type(exc)):
        asyncio.run(GeolocationProvider(_FailingSource(exc)).request_location())


@pytest.mark.parametrize(
    "provider",
    [
        GeolocationProvider(None),
        GeolocationProvider(_FailingSource(PermissionDenied("denied"))),
        GeolocationProvider(_SlowSource(), PositionOptions(timeout_seconds=0.01)),
    ],
)
def test_locate_or_none_degrades_to_unknown(provider):
    assert asyncio.run(locate_or_none(provider)) is None


def test_build_provider_uses_configured_default():
    settings = LocationSettings.model_validate({"timeout_seconds": 5, "default": {"lat": 12.97, "lng": 77.59}})
    provider = build_provider(settings)

    assert provider.options.timeout_seconds == 5
    assert asyncio.run(provider.request_location()) == Coordinate(lat=12.97, lng=77.59)


def test_build_provider_without_default_is_unsupported():
    assert asyncio.run(locate_or_none(build_provider(LocationSettings()))) is None
