from __future__ import annotations

import argparse
import json
import random
from pathlib import Path
from typing import Any

from routeplanner.models import RoutePoint, route_to_geojson
from routeplanner.road_graph import build_road_graph
from routeplanner.route_composer import compose_route


def _parse_lnglat(raw: str) -> tuple[float, float]:
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 2:
        raise argparse.ArgumentTypeError(f"expected LON,LAT, got {raw!r}")
    try:
        return (float(parts[0]), float(parts[1]))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected LON,LAT, got {raw!r}") from e


def _load_features(path: Path | None) -> Any:
    if path is None:
        return None
    return json.loads(path.read_text(encoding="utf-8"))


def plan(
    *,
    start: tuple[float, float],
    end: tuple[float, float],
    waypoints: list[tuple[float, float]],
    mode: str,
    features_path: Path | None,
    seed: int | None,
    merge_tolerance_deg: float | None,
) -> dict[str, Any]:
    features = _load_features(features_path)
    graph_summary: dict[str, Any] | None = None
    if features is not None:
        graph = build_road_graph(features, merge_tolerance_deg=merge_tolerance_deg)
        graph_summary = {
            "nodes": len(graph.nodes),
            "edges": graph.edge_count(),
            "features": graph.feature_count,
            "skipped_features": graph.skipped_features,
            "components": graph.component_count,
        }
    route = compose_route(
        RoutePoint(name="start", lnglat=start),
        RoutePoint(name="end", lnglat=end),
        [RoutePoint(name=f"waypoint {idx + 1}", lnglat=wp) for idx, wp in enumerate(waypoints)],
        mode,
        features,
        rng=random.Random(seed) if seed is not None else None,
        merge_tolerance_deg=merge_tolerance_deg,
    )
    return {
        "graph": graph_summary,
        "route": route.model_dump(mode="json"),
        "geometry": route_to_geojson(route).model_dump(mode="json"),
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Plan a route over a GeoJSON road network and print it as JSON.")
    parser.add_argument("--start", type=_parse_lnglat, required=True, help="Start point as LON,LAT.")
    parser.add_argument("--end", type=_parse_lnglat, required=True, help="End point as LON,LAT.")
    parser.add_argument(
        "--via",
        type=_parse_lnglat,
        action="append",
        default=[],
        help="Waypoint as LON,LAT (repeatable).",
    )
    parser.add_argument("--mode", choices=("driving", "walking", "transit"), default="driving")
    parser.add_argument(
        "--features",
        type=Path,
        default=None,
        help="GeoJSON FeatureCollection of road lines (omit to force the interpolated fallback).",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for step wording and fallback jitter.")
    parser.add_argument(
        "--merge-tolerance-deg",
        type=float,
        default=None,
        help="Merge line endpoints closer than this many degrees into one node.",
    )
    parser.add_argument("--out-file", type=Path, default=None, help="Write JSON here instead of stdout.")
    args = parser.parse_args()
    report = plan(
        start=args.start,
        end=args.end,
        waypoints=list(args.via),
        mode=args.mode,
        features_path=args.features,
        seed=args.seed,
        merge_tolerance_deg=args.merge_tolerance_deg,
    )
    text = json.dumps(report, indent=2, ensure_ascii=False)
    if args.out_file is not None:
        args.out_file.parent.mkdir(parents=True, exist_ok=True)
        args.out_file.write_text(text, encoding="utf-8")
    else:
        print(text)


if __name__ == "__main__":
    main()
