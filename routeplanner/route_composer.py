from __future__ import annotations

import logging
import math
import random
import time
import uuid
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from .errors import RouteComputationError, RouteInputError, normalize_fallback_reason
from .fallback import synthesize_fallback_path
from .geodesy import Coordinate, bearing_deg, path_distance_m
from .instructions import InstructionWriter, StepContext, writer_for_style
from .logging_utils import log_event
from .models import ROUTE_MODES, Route, RoutePoint, RouteStep
from .path_simplifier import DEFAULT_TURN_THRESHOLD_DEG, simplify_path, turn_angle_at
from .road_graph import build_road_graph, nearest_node
from .settings import settings
from .shortest_path import shortest_path

MODE_SPEEDS_MPS: dict[str, float] = {
    "driving": 40.0 * 1000.0 / 3600.0,
    "walking": 4.0 * 1000.0 / 3600.0,
    "transit": 25.0 * 1000.0 / 3600.0,
}
DEFAULT_SPEED_MPS = 30.0 * 1000.0 / 3600.0
DEFAULT_WAYPOINT_PROXIMITY_DEG = 0.001

# Only road-network routing is available; other modes are synthesized.
GRAPH_ROUTED_MODES: frozenset[str] = frozenset({"driving"})


class ComposeState(str, Enum):
    IDLE = "idle"
    BUILDING_GRAPH = "building_graph"
    SEARCHING = "searching"
    FOUND = "found"
    FALLBACK = "fallback"
    STEP_SYNTHESIS = "step_synthesis"
    COMPLETE = "complete"


def mode_speed_mps(mode: str | None) -> float:
    return MODE_SPEEDS_MPS.get(str(mode or ""), DEFAULT_SPEED_MPS)


class _ComposeTrace:
    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        self.states: list[ComposeState] = [ComposeState.IDLE]
        self._t0 = time.perf_counter()

    def enter(self, state: ComposeState, **fields: Any) -> None:
        self.states.append(state)
        log_event(
            "route_compose_state",
            level=logging.DEBUG,
            request_id=self.request_id,
            state=state.value,
            elapsed_ms=round((time.perf_counter() - self._t0) * 1000, 2),
            **fields,
        )


def _coerce_point(raw: RoutePoint | Mapping[str, Any]) -> RoutePoint:
    if isinstance(raw, RoutePoint):
        return raw
    return RoutePoint.model_validate(raw)


def _drop_repeats(path: Sequence[Coordinate]) -> list[Coordinate]:
    out: list[Coordinate] = []
    for point in path:
        if out and out[-1] == point:
            continue
        out.append(point)
    return out


def _graph_path(
    stops: Sequence[Coordinate],
    features: object,
    trace: _ComposeTrace,
    *,
    merge_tolerance_deg: float | None,
) -> tuple[list[Coordinate] | None, str | None]:
    trace.enter(ComposeState.BUILDING_GRAPH)
    if features is None:
        return None, "road_features_missing"
    graph = build_road_graph(features, merge_tolerance_deg=merge_tolerance_deg)
    if graph.is_empty:
        return None, "road_graph_empty"

    trace.enter(ComposeState.SEARCHING, nodes=len(graph.nodes), components=graph.component_count)
    merged: list[Coordinate] = []
    for idx in range(len(stops) - 1):
        origin, destination = stops[idx], stops[idx + 1]
        source = nearest_node(graph, origin)
        target = nearest_node(graph, destination)
        if not graph.connected(source.id, target.id):
            return None, "road_graph_no_path"
        leg = shortest_path(graph, source.id, target.id)
        if leg is None:
            return None, "road_graph_no_path"
        # The snapped path is bracketed by the exact stop coordinates.
        merged.extend([origin, *leg, destination] if idx == 0 else [*leg, destination])
    return _drop_repeats(merged), None


def _resolve_path(
    stops: Sequence[Coordinate],
    mode: str,
    features: object,
    trace: _ComposeTrace,
    *,
    rng: random.Random,
    merge_tolerance_deg: float | None,
) -> tuple[list[Coordinate], str | None]:
    if mode in GRAPH_ROUTED_MODES:
        try:
            path, reason = _graph_path(stops, features, trace, merge_tolerance_deg=merge_tolerance_deg)
        except Exception as exc:
            # Graph routing degrades to the synthesized path, never to an error.
            log_event(
                "road_graph_routing_failed",
                level=logging.WARNING,
                request_id=trace.request_id,
                error=f"{type(exc).__name__}: {exc}",
            )
            path, reason = None, "road_graph_failed"
        if path:
            trace.enter(ComposeState.FOUND, points=len(path))
            return path, None
    else:
        reason = "mode_not_graph_routable"

    reason = normalize_fallback_reason(reason or "")
    trace.enter(ComposeState.FALLBACK, reason=reason)
    log_event("route_fallback", request_id=trace.request_id, mode=mode, reason=reason)
    path = synthesize_fallback_path(
        stops,
        points_per_segment=settings.fallback_points_per_segment,
        jitter_deg=settings.fallback_jitter_deg,
        rng=rng,
    )
    return path, reason


def _waypoint_near(point: Coordinate, waypoints: Sequence[RoutePoint], threshold_deg: float) -> RoutePoint | None:
    for waypoint in waypoints:
        dx = point[0] - waypoint.lnglat[0]
        dy = point[1] - waypoint.lnglat[1]
        if math.sqrt(dx * dx + dy * dy) < threshold_deg:
            return waypoint
    return None


def synthesize_steps(
    path: Sequence[Coordinate],
    *,
    start_name: str,
    end_name: str,
    waypoints: Sequence[RoutePoint],
    mode: str,
    writer: InstructionWriter,
    threshold_deg: float = DEFAULT_TURN_THRESHOLD_DEG,
    waypoint_proximity_deg: float = DEFAULT_WAYPOINT_PROXIMITY_DEG,
) -> list[RouteStep]:
    """One step per consecutive pair of key points of `path`.

    Neighbouring steps share their boundary point, so dropping the first point
    of every step after the first rebuilds `path` exactly.
    """
    speed = mode_speed_mps(mode)
    key_points = simplify_path(path, threshold_deg=threshold_deg)
    if len(key_points) < 2:
        context = StepContext(index=0, count=1, start_name=start_name, end_name=end_name, heading_deg=0.0)
        return [RouteStep(instruction=writer.write(context), distance=0, duration=0, path=tuple(path))]

    count = len(key_points) - 1
    steps: list[RouteStep] = []
    for idx in range(count):
        begin, finish = key_points[idx], key_points[idx + 1]
        segment = path[begin : finish + 1]
        distance_m = path_distance_m(segment)
        waypoint = _waypoint_near(path[begin], waypoints, waypoint_proximity_deg) if idx > 0 else None
        context = StepContext(
            index=idx,
            count=count,
            start_name=start_name,
            end_name=end_name,
            heading_deg=bearing_deg(path[begin], path[begin + 1]),
            turn_deg=turn_angle_at(path, begin) if begin > 0 else None,
            waypoint_name=waypoint.name if waypoint is not None else None,
        )
        steps.append(
            RouteStep(
                instruction=writer.write(context),
                distance=int(round(distance_m)),
                duration=int(round(distance_m / speed)),
                path=tuple(segment),
            )
        )
    return steps


def compose_route(
    start: RoutePoint | Mapping[str, Any] | None,
    end: RoutePoint | Mapping[str, Any] | None,
    waypoints: Sequence[RoutePoint | Mapping[str, Any]] | None = None,
    mode: str = "driving",
    features: object = None,
    *,
    writer: InstructionWriter | None = None,
    rng: random.Random | None = None,
    merge_tolerance_deg: float | None = None,
) -> Route:
    """Plan a route from `start` to `end` through `waypoints`.

    `features` is the road-network line geometry already fetched for the
    request (GeoJSON FeatureCollection, or a sequence of features/geometries).
    Only driving routes use it; every graph or search failure falls back to an
    interpolated path. Raises RouteInputError for missing points or an unknown
    mode, and RouteComputationError if the final route cannot be assembled.
    """
    if start is None:
        raise RouteInputError(field="start", message="start point is required")
    if end is None:
        raise RouteInputError(field="end", message="end point is required")
    if mode not in ROUTE_MODES:
        raise RouteInputError(field="mode", message=f"unsupported travel mode: {mode!r}")

    rng = rng or random.Random()
    writer = writer or writer_for_style(settings.instruction_style, rng=rng)
    if merge_tolerance_deg is None:
        merge_tolerance_deg = settings.graph_merge_tolerance_deg
    trace = _ComposeTrace(uuid.uuid4().hex[:12])

    try:
        start_pt = _coerce_point(start)
        end_pt = _coerce_point(end)
        via = tuple(_coerce_point(wp) for wp in (waypoints or ()))
        stops = [start_pt.lnglat, *(wp.lnglat for wp in via), end_pt.lnglat]

        path, fallback_reason = _resolve_path(
            stops,
            mode,
            features,
            trace,
            rng=rng,
            merge_tolerance_deg=merge_tolerance_deg,
        )

        trace.enter(ComposeState.STEP_SYNTHESIS, points=len(path))
        steps = synthesize_steps(
            path,
            start_name=start_pt.name,
            end_name=end_pt.name,
            waypoints=via,
            mode=mode,
            writer=writer,
            threshold_deg=settings.turn_angle_threshold_deg,
            waypoint_proximity_deg=settings.waypoint_proximity_deg,
        )
        distance_m = path_distance_m(path)
        route = Route(
            id=trace.request_id,
            name=f"{start_pt.name} to {end_pt.name}",
            distance=int(round(distance_m)),
            duration=int(round(distance_m / mode_speed_mps(mode))),
            mode=mode,  # type: ignore[arg-type]
            points=(start_pt, *via, end_pt),
            path=tuple(path),
            steps=tuple(steps),
            fallback_used=fallback_reason is not None,
            fallback_reason=fallback_reason,
        )
    except Exception as exc:
        log_event(
            "route_compose_failed",
            level=logging.ERROR,
            request_id=trace.request_id,
            error=f"{type(exc).__name__}: {exc}",
        )
        raise RouteComputationError(details={"error": str(exc)}) from exc

    trace.enter(ComposeState.COMPLETE, steps=len(route.steps), fallback_used=route.fallback_used)
    return route
