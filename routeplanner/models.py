from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

RouteMode = Literal["driving", "walking", "transit"]
ROUTE_MODES: frozenset[str] = frozenset({"driving", "walking", "transit"})

LngLat = tuple[float, float]


class RoutePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    lnglat: LngLat

    @field_validator("lnglat")
    @classmethod
    def finite(cls, v: LngLat) -> LngLat:
        if not all(math.isfinite(c) for c in v):
            raise ValueError("coordinates must be finite")
        return v


class RouteStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    instruction: str
    distance: int = Field(..., ge=0)  # meters
    duration: int = Field(..., ge=0)  # seconds
    path: tuple[LngLat, ...]


class Route(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    distance: int = Field(..., ge=0)  # meters
    duration: int = Field(..., ge=0)  # seconds
    mode: RouteMode
    points: tuple[RoutePoint, ...]
    path: tuple[LngLat, ...]
    steps: tuple[RouteStep, ...]
    fallback_used: bool = False
    fallback_reason: str | None = None


class GeoJSONLineString(BaseModel):
    type: Literal["LineString"]
    coordinates: list[LngLat]  # [lon, lat]


def route_to_geojson(route: Route) -> GeoJSONLineString:
    return GeoJSONLineString(type="LineString", coordinates=list(route.path))


class RouteRequest(BaseModel):
    # start/end are optional here so a missing point is reported by the
    # composer with the field name instead of a schema error.
    start: RoutePoint | None = None
    end: RoutePoint | None = None
    waypoints: list[RoutePoint] = Field(default_factory=list, max_length=48)
    mode: RouteMode = "driving"
    features: dict[str, Any] | None = None


class RouteResponse(BaseModel):
    route: Route
    geometry: GeoJSONLineString
