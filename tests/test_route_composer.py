from __future__ import annotations

import math
import random

import pytest

import routeplanner.route_composer as route_composer
from routeplanner.errors import RouteComputationError, RouteInputError
from routeplanner.geodesy import path_distance_m
from routeplanner.instructions import StepContext
from routeplanner.models import Route, RoutePoint
from routeplanner.path_simplifier import DEFAULT_TURN_THRESHOLD_DEG
from routeplanner.route_composer import compose_route, mode_speed_mps, synthesize_steps
from routeplanner.settings import settings

A = RoutePoint(name="A", lnglat=(114.0579, 22.5431))
B = RoutePoint(name="B", lnglat=(113.9355, 22.4931))


class _RecordingWriter:
    def __init__(self) -> None:
        self.contexts: list[StepContext] = []

    def write(self, context: StepContext) -> str:
        self.contexts.append(context)
        suffix = f" via {context.waypoint_name}" if context.waypoint_name else ""
        return f"step {context.index + 1}/{context.count}{suffix}"


def _line(*coords: tuple[float, float]) -> dict[str, object]:
    return {
        "type": "Feature",
        "geometry": {"type": "LineString", "coordinates": [list(c) for c in coords]},
    }


def _rebuild_path(route: Route) -> list[tuple[float, float]]:
    rebuilt: list[tuple[float, float]] = []
    for idx, step in enumerate(route.steps):
        rebuilt.extend(step.path if idx == 0 else step.path[1:])
    return rebuilt


def _assert_steps_consistent(route: Route) -> None:
    assert len(route.steps) >= 1
    assert _rebuild_path(route) == list(route.path)
    assert abs(sum(step.distance for step in route.steps) - route.distance) <= len(route.steps)


def test_empty_geometry_source_falls_back_to_interpolated_route() -> None:
    route = compose_route(A, B, [], "driving", {"type": "FeatureCollection", "features": []}, rng=random.Random(1))

    assert route.fallback_used is True
    assert route.fallback_reason == "road_graph_empty"
    assert route.path[0] == A.lnglat
    assert route.path[-1] == B.lnglat
    assert len(route.path) == settings.fallback_points_per_segment
    assert route.distance > 0
    assert route.name == "A to B"
    assert route.points == (A, B)
    _assert_steps_consistent(route)


def test_missing_features_also_fall_back() -> None:
    route = compose_route(A, B, mode="driving", features=None, rng=random.Random(2))
    assert route.fallback_reason == "road_features_missing"
    assert route.path[0] == A.lnglat and route.path[-1] == B.lnglat


def test_fallback_path_has_bounded_jitter() -> None:
    route = compose_route(A, B, mode="walking", rng=random.Random(3))
    assert route.fallback_reason == "mode_not_graph_routable"
    n = len(route.path)
    for idx, (lon, lat) in enumerate(route.path):
        ratio = idx / (n - 1)
        exp_lon = A.lnglat[0] + (B.lnglat[0] - A.lnglat[0]) * ratio
        exp_lat = A.lnglat[1] + (B.lnglat[1] - A.lnglat[1]) * ratio
        assert abs(lon - exp_lon) <= settings.fallback_jitter_deg / 2 + 1e-12
        assert abs(lat - exp_lat) <= settings.fallback_jitter_deg / 2 + 1e-12


def test_walking_takes_longer_than_driving_on_same_path() -> None:
    driving = compose_route(A, B, mode="driving", rng=random.Random(99), writer=_RecordingWriter())
    walking = compose_route(A, B, mode="walking", rng=random.Random(99), writer=_RecordingWriter())

    assert driving.path == walking.path
    assert driving.distance == walking.distance
    assert walking.duration > driving.duration
    assert driving.duration == round(path_distance_m(driving.path) / mode_speed_mps("driving"))


def test_graph_route_follows_road_geometry() -> None:
    start = RoutePoint(name="Depot", lnglat=(114.0000, 22.5000))
    end = RoutePoint(name="Port", lnglat=(114.0200, 22.5200))
    road = [(114.0001, 22.5001), (114.0100, 22.5001), (114.0199, 22.5199)]
    writer = _RecordingWriter()

    route = compose_route(start, end, [], "driving", [_line(*road)], writer=writer)

    assert route.fallback_used is False
    assert route.fallback_reason is None
    assert list(route.path) == [start.lnglat, *road, end.lnglat]
    assert route.distance == round(path_distance_m(route.path))
    _assert_steps_consistent(route)
    assert [ctx.index for ctx in writer.contexts] == list(range(len(route.steps)))
    assert writer.contexts[0].turn_deg is None
    assert route.steps[0].instruction.startswith("step 1/")


def test_graph_route_runs_leg_by_leg_through_waypoints() -> None:
    start = RoutePoint(name="S", lnglat=(0.0, 0.0))
    via = RoutePoint(name="Bridge", lnglat=(0.0, 0.01))
    end = RoutePoint(name="E", lnglat=(0.01, 0.01))
    features = [_line((0.0, 0.0), (0.0, 0.01)), _line((0.0, 0.01), (0.01, 0.01))]
    writer = _RecordingWriter()

    # Without merging, the two roads would be separate components.
    unmerged = compose_route(start, end, [via], "driving", features, writer=_RecordingWriter(), rng=random.Random(1))
    assert unmerged.fallback_reason == "road_graph_no_path"

    route = compose_route(start, end, [via], "driving", features, writer=writer, merge_tolerance_deg=0.0)

    assert route.fallback_used is False
    assert list(route.path) == [(0.0, 0.0), (0.0, 0.01), (0.01, 0.01)]
    assert route.points == (start, via, end)
    assert len(route.steps) == 2
    assert route.steps[1].instruction == "step 2/2 via Bridge"


def test_unreachable_target_falls_back() -> None:
    features = [
        _line((114.0579, 22.5431), (114.0500, 22.5400)),
        _line((113.9355, 22.4931), (113.9400, 22.4950)),
    ]
    route = compose_route(A, B, [], "driving", features, rng=random.Random(5))
    assert route.fallback_used is True
    assert route.fallback_reason == "road_graph_no_path"
    _assert_steps_consistent(route)


def test_graph_failures_are_absorbed(monkeypatch) -> None:
    def _boom(*_args, **_kwargs):
        raise RuntimeError("corrupt geometry")

    monkeypatch.setattr(route_composer, "build_road_graph", _boom)
    route = compose_route(A, B, [], "driving", [_line(A.lnglat, B.lnglat)], rng=random.Random(6))
    assert route.fallback_reason == "road_graph_failed"


def test_missing_start_is_rejected_before_graph_work(monkeypatch) -> None:
    def _unexpected(*_args, **_kwargs):
        raise AssertionError("graph must not be built for invalid input")

    monkeypatch.setattr(route_composer, "build_road_graph", _unexpected)
    with pytest.raises(RouteInputError) as excinfo:
        compose_route(None, B, [], "driving", [_line(A.lnglat, B.lnglat)])
    assert excinfo.value.field == "start"
    assert "start" in str(excinfo.value)

    with pytest.raises(RouteInputError) as excinfo:
        compose_route(A, None)
    assert excinfo.value.field == "end"


def test_unknown_mode_is_an_input_error() -> None:
    with pytest.raises(RouteInputError) as excinfo:
        compose_route(A, B, mode="flying")
    assert excinfo.value.field == "mode"


def test_malformed_point_surfaces_generic_failure() -> None:
    with pytest.raises(RouteComputationError) as excinfo:
        compose_route({"name": "A"}, B, mode="walking")
    assert str(excinfo.value) == "route computation failed, please retry"


def test_dict_points_are_accepted() -> None:
    route = compose_route(
        {"name": "A", "lnglat": [114.0579, 22.5431]},
        {"name": "B", "lnglat": [113.9355, 22.4931]},
        mode="transit",
        rng=random.Random(8),
    )
    assert route.mode == "transit"
    assert route.points[0] == A


def test_waypoint_fallback_passes_through_each_stop() -> None:
    via = RoutePoint(name="Mid", lnglat=(114.0, 22.52))
    route = compose_route(A, B, [via], "walking", rng=random.Random(4))
    per_segment = settings.fallback_points_per_segment
    assert len(route.path) == 2 * per_segment - 1
    assert route.path[per_segment - 1] == via.lnglat
    _assert_steps_consistent(route)


def test_synthesize_steps_splits_on_turns_and_names_waypoints() -> None:
    path = [(0.0, 0.0), (0.0, 0.01), (0.0, 0.02), (0.01, 0.02), (0.02, 0.02)]
    waypoint = RoutePoint(name="Corner", lnglat=(0.0002, 0.0201))
    writer = _RecordingWriter()

    steps = synthesize_steps(
        path,
        start_name="S",
        end_name="E",
        waypoints=[waypoint],
        mode="driving",
        writer=writer,
    )

    assert len(steps) == 2
    assert steps[0].path == tuple(path[:3])
    assert steps[1].path == tuple(path[2:])
    assert steps[1].instruction == "step 2/2 via Corner"
    assert writer.contexts[1].turn_deg is not None and writer.contexts[1].turn_deg > 80.0
    for step in steps:
        assert step.duration == round(path_distance_m(step.path) / mode_speed_mps("driving"))


def test_single_point_path_yields_one_empty_step() -> None:
    steps = synthesize_steps(
        [(1.0, 1.0)],
        start_name="S",
        end_name="E",
        waypoints=[],
        mode="walking",
        writer=_RecordingWriter(),
    )
    assert len(steps) == 1
    assert steps[0].distance == 0
    assert steps[0].path == ((1.0, 1.0),)


def test_mode_speed_table() -> None:
    assert mode_speed_mps("driving") == pytest.approx(40 / 3.6)
    assert mode_speed_mps("walking") == pytest.approx(4 / 3.6)
    assert mode_speed_mps("transit") == pytest.approx(25 / 3.6)
    assert mode_speed_mps(None) == pytest.approx(30 / 3.6)


class _CapturedTraces:
    def __init__(self, monkeypatch) -> None:
        self.traces: list[route_composer._ComposeTrace] = []
        captured = self.traces

        class _Trace(route_composer._ComposeTrace):
            def __init__(self, request_id: str) -> None:
                super().__init__(request_id)
                captured.append(self)

        monkeypatch.setattr(route_composer, "_ComposeTrace", _Trace)

    def states(self) -> list[str]:
        assert len(self.traces) == 1
        return [state.value for state in self.traces[0].states]


def test_found_route_walks_every_compose_state(monkeypatch) -> None:
    captured = _CapturedTraces(monkeypatch)
    compose_route(A, B, [], "driving", [_line(A.lnglat, B.lnglat)], rng=random.Random(10))
    assert captured.states() == [
        "idle",
        "building_graph",
        "searching",
        "found",
        "step_synthesis",
        "complete",
    ]


def test_empty_graph_goes_straight_from_build_to_fallback(monkeypatch) -> None:
    captured = _CapturedTraces(monkeypatch)
    compose_route(A, B, [], "driving", {"type": "FeatureCollection", "features": []}, rng=random.Random(11))
    assert captured.states() == ["idle", "building_graph", "fallback", "step_synthesis", "complete"]


def test_walking_never_builds_a_graph(monkeypatch) -> None:
    captured = _CapturedTraces(monkeypatch)
    compose_route(A, B, [], "walking", [_line(A.lnglat, B.lnglat)], rng=random.Random(12))
    assert captured.states() == ["idle", "fallback", "step_synthesis", "complete"]


def test_disconnected_components_skip_the_search(monkeypatch) -> None:
    def _unexpected(*_args, **_kwargs):
        raise AssertionError("search must not run across components")

    monkeypatch.setattr(route_composer, "shortest_path", _unexpected)
    features = [
        _line((114.0579, 22.5431), (114.0500, 22.5400)),
        _line((113.9355, 22.4931), (113.9400, 22.4950)),
    ]
    route = compose_route(A, B, [], "driving", features, rng=random.Random(13))
    assert route.fallback_reason == "road_graph_no_path"


def test_synthesize_steps_defaults_follow_shared_constants() -> None:
    # 15 degree bend stays in one step; 25 degree bend splits.
    def _bent(angle_deg: float) -> list[tuple[float, float]]:
        rad = math.radians(angle_deg)
        return [(0.0, 0.0), (0.0, 0.01), (0.01 * math.sin(rad), 0.01 + 0.01 * math.cos(rad))]

    assert DEFAULT_TURN_THRESHOLD_DEG == 20.0
    gentle = synthesize_steps(
        _bent(15.0), start_name="S", end_name="E", waypoints=[], mode="driving", writer=_RecordingWriter()
    )
    sharp = synthesize_steps(
        _bent(25.0), start_name="S", end_name="E", waypoints=[], mode="driving", writer=_RecordingWriter()
    )
    assert len(gentle) == 1
    assert len(sharp) == 2

    near = RoutePoint(name="Near", lnglat=(0.0, 0.01 + route_composer.DEFAULT_WAYPOINT_PROXIMITY_DEG / 2))
    writer = _RecordingWriter()
    synthesize_steps(_bent(25.0), start_name="S", end_name="E", waypoints=[near], mode="driving", writer=writer)
    assert writer.contexts[1].waypoint_name == "Near"
