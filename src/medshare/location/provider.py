"""
Viewer geolocation.

A `GeolocationProvider` asks a platform `PositionSource` for a single position fix
(no continuous watch) with the configured accuracy/timeout/cache options. Every
failure is a `LocationError`; browsing code goes through `locate_or_none()` and
treats failure as "location unknown" (distances render as unknown, distance sort
keeps recency order).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from medshare.config.settings import LocationSettings
from medshare.domain.models import Coordinate

logger = logging.getLogger(__name__)


class LocationError(Exception):
    """Base class for geolocation failures."""


class PermissionDenied(LocationError):
    pass


class PositionUnavailable(LocationError):
    pass


class LocationTimeout(LocationError):
    pass


class LocationUnsupported(LocationError):
    pass


@dataclass(frozen=True)
class PositionOptions:
    high_accuracy: bool = True
    timeout_seconds: float = 10
    maximum_age_seconds: float = 60

    @classmethod
    def from_settings(cls, settings: LocationSettings) -> "PositionOptions":
        return cls(
            high_accuracy=settings.high_accuracy,
            timeout_seconds=settings.timeout_seconds,
            maximum_age_seconds=settings.maximum_age_seconds,
        )


class PositionSource(Protocol):
    """Platform location capability.

    Implementations raise `PermissionDenied` / `PositionUnavailable` for platform errors.
    """

    async def current_position(self, options: PositionOptions) -> Coordinate: ...


class FixedPositionSource:
    """Always reports the same coordinate (configured default location)."""

    def __init__(self, coordinate: Coordinate):
        self._coordinate = coordinate

    async def current_position(self, options: PositionOptions) -> Coordinate:
        return self._coordinate


class GeolocationProvider:
    """Single-shot location requests with a short-lived cached fix."""

    def __init__(
        self,
        source: PositionSource | None,
        options: PositionOptions | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = source
        self._options = options or PositionOptions()
        self._clock = clock
        self._cached: tuple[float, Coordinate] | None = None

    @property
    def options(self) -> PositionOptions:
        return self._options

    async def request_location(self) -> Coordinate:
        """Return the viewer coordinate or raise a `LocationError`."""
        if self._source is None:
            raise LocationUnsupported("Geolocation is not supported on this host")

        now = self._clock()
        if self._cached is not None:
            fixed_at, coordinate = self._cached
            if now - fixed_at <= self._options.maximum_age_seconds:
                return coordinate

        try:
            coordinate = await asyncio.wait_for(
                self._source.current_position(self._options),
                timeout=self._options.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise LocationTimeout(
                f"No position within {self._options.timeout_seconds:g}s"
            ) from e

        self._cached = (self._clock(), coordinate)
        return coordinate


async def locate_or_none(provider: GeolocationProvider) -> Coordinate | None:
    """Request the viewer location; any `LocationError` degrades to None."""
    try:
        return await provider.request_location()
    except LocationError as e:
        logger.info("Viewer location unknown (%s: %s)", type(e).__name__, e)
        return None


def build_provider(settings: LocationSettings) -> GeolocationProvider:
    """Provider backed by the configured default location, or unsupported when none is set."""
    source: PositionSource | None = None
    if settings.default is not None:
        source = FixedPositionSource(Coordinate(lat=settings.default.lat, lng=settings.default.lng))
    return GeolocationProvider(source, PositionOptions.from_settings(settings))
