from __future__ import annotations

import math
from collections import deque
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .geodesy import Coordinate, haversine_m, path_distance_m
from .logging_utils import log_event


@dataclass(frozen=True)
class GraphEdge:
    to: int
    weight_m: float
    coordinates: tuple[Coordinate, ...]


@dataclass(frozen=True)
class GraphNode:
    id: int
    position: Coordinate
    edges: tuple[GraphEdge, ...]


@dataclass(frozen=True)
class RoadGraph:
    """Arena of nodes indexed by integer id; edges reference targets by id."""

    nodes: tuple[GraphNode, ...]
    feature_count: int
    skipped_features: int
    component_by_node: tuple[int, ...]
    component_count: int
    largest_component_nodes: int

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def connected(self, a: int, b: int) -> bool:
        return self.component_by_node[a] == self.component_by_node[b]

    def edge_count(self) -> int:
        return sum(len(node.edges) for node in self.nodes)


def _parse_point(raw: object) -> Coordinate | None:
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        return None
    lon_raw, lat_raw = raw[0], raw[1]
    for value in (lon_raw, lat_raw):
        if not isinstance(value, (int, float, Decimal)) or isinstance(value, bool):
            return None
    lon = float(lon_raw)
    lat = float(lat_raw)
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return None
    return (lon, lat)


def _geometry_of(raw: object) -> Mapping[str, Any] | None:
    if hasattr(raw, "__geo_interface__"):
        raw = raw.__geo_interface__  # type: ignore[union-attr]
    if not isinstance(raw, Mapping):
        return None
    if raw.get("type") == "Feature" or "geometry" in raw:
        geometry = raw.get("geometry")
        if hasattr(geometry, "__geo_interface__"):
            geometry = geometry.__geo_interface__  # type: ignore[union-attr]
        return geometry if isinstance(geometry, Mapping) else None
    return raw


def parse_line_coordinates(raw: object) -> list[Coordinate] | None:
    """Resolve a feature or bare geometry to its line coordinates.

    LineString geometries are used as-is; for MultiLineString only the first
    member is used. Anything else, any malformed point, or fewer than two
    points yields None.
    """
    geometry = _geometry_of(raw)
    if geometry is None:
        return None
    geom_type = geometry.get("type")
    coords_raw = geometry.get("coordinates")
    if geom_type == "MultiLineString":
        if not isinstance(coords_raw, (list, tuple)) or not coords_raw:
            return None
        coords_raw = coords_raw[0]
    elif geom_type != "LineString":
        return None
    if not isinstance(coords_raw, (list, tuple)) or len(coords_raw) < 2:
        return None
    out: list[Coordinate] = []
    for point_raw in coords_raw:
        point = _parse_point(point_raw)
        if point is None:
            return None
        out.append(point)
    return out


def _feature_items(features: object) -> Iterable[object]:
    if features is None:
        return ()
    if hasattr(features, "__geo_interface__"):
        features = features.__geo_interface__  # type: ignore[union-attr]
    if isinstance(features, Mapping):
        if features.get("type") == "FeatureCollection" or "features" in features:
            items = features.get("features")
            return items if isinstance(items, (list, tuple)) else ()
        return (features,)
    if isinstance(features, (str, bytes)):
        return ()
    if isinstance(features, Iterable):
        return features
    return ()


def iter_line_coordinates(features: object) -> Iterator[list[Coordinate] | None]:
    """Yield parsed line coordinates per input feature, None for discarded ones."""
    for item in _feature_items(features):
        yield parse_line_coordinates(item)


def _grid_key(lon: float, lat: float, bucket_deg: float) -> tuple[int, int]:
    return (int(math.floor(lon / bucket_deg)), int(math.floor(lat / bucket_deg)))


class _NodeAllocator:
    def __init__(self, merge_tolerance_deg: float | None) -> None:
        self.positions: list[Coordinate] = []
        self.edges: list[list[GraphEdge]] = []
        self._tolerance = merge_tolerance_deg
        self._exact: dict[Coordinate, int] = {}
        self._grid: dict[tuple[int, int], list[int]] = {}

    def _find_existing(self, position: Coordinate) -> int | None:
        tol = self._tolerance
        if tol is None:
            return None
        if tol <= 0.0:
            return self._exact.get(position)
        cx, cy = _grid_key(position[0], position[1], tol)
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for node_id in self._grid.get((cx + dx, cy + dy), ()):
                    lon, lat = self.positions[node_id]
                    if abs(lon - position[0]) <= tol and abs(lat - position[1]) <= tol:
                        return node_id
        return None

    def allocate(self, position: Coordinate) -> int:
        existing = self._find_existing(position)
        if existing is not None:
            return existing
        node_id = len(self.positions)
        self.positions.append(position)
        self.edges.append([])
        if self._tolerance is not None:
            if self._tolerance <= 0.0:
                self._exact.setdefault(position, node_id)
            else:
                key = _grid_key(position[0], position[1], self._tolerance)
                self._grid.setdefault(key, []).append(node_id)
        return node_id


def _compute_component_index(adjacency: Sequence[Sequence[GraphEdge]]) -> tuple[tuple[int, ...], int, int]:
    component_by_node = [0] * len(adjacency)
    component_sizes: dict[int, int] = {}
    component_idx = 0
    for node_id in range(len(adjacency)):
        if component_by_node[node_id]:
            continue
        component_idx += 1
        q: deque[int] = deque([node_id])
        size = 0
        while q:
            current = q.popleft()
            if component_by_node[current]:
                continue
            component_by_node[current] = component_idx
            size += 1
            # Edges come in reciprocal pairs, so outgoing adjacency is enough.
            for edge in adjacency[current]:
                if not component_by_node[edge.to]:
                    q.append(edge.to)
        component_sizes[component_idx] = size
    largest = max(component_sizes.values(), default=0)
    return tuple(component_by_node), component_idx, largest


def build_road_graph(features: object, *, merge_tolerance_deg: float | None = None) -> RoadGraph:
    """Build a bidirectional weighted graph from line features.

    Every retained feature contributes a start node and an end node joined by a
    forward edge carrying the feature's coordinates and a reverse edge carrying
    them reversed; both are weighted by the feature's haversine length. Nodes
    are not shared across features unless `merge_tolerance_deg` is given, in
    which case an endpoint within that per-axis tolerance of an existing node
    reuses it.
    """
    allocator = _NodeAllocator(merge_tolerance_deg)
    feature_count = 0
    skipped = 0
    for coords in iter_line_coordinates(features):
        if coords is None:
            skipped += 1
            continue
        feature_count += 1
        start_id = allocator.allocate(coords[0])
        end_id = allocator.allocate(coords[-1])
        weight_m = path_distance_m(coords)
        forward = tuple(coords)
        allocator.edges[start_id].append(GraphEdge(to=end_id, weight_m=weight_m, coordinates=forward))
        allocator.edges[end_id].append(GraphEdge(to=start_id, weight_m=weight_m, coordinates=forward[::-1]))

    component_by_node, component_count, largest = _compute_component_index(allocator.edges)
    graph = RoadGraph(
        nodes=tuple(
            GraphNode(id=node_id, position=position, edges=tuple(allocator.edges[node_id]))
            for node_id, position in enumerate(allocator.positions)
        ),
        feature_count=feature_count,
        skipped_features=skipped,
        component_by_node=component_by_node,
        component_count=component_count,
        largest_component_nodes=largest,
    )
    log_event(
        "road_graph_built",
        nodes=len(graph.nodes),
        edges=graph.edge_count(),
        features=feature_count,
        skipped_features=skipped,
        component_count=component_count,
        largest_component_nodes=largest,
        merge_tolerance_deg=merge_tolerance_deg,
    )
    return graph


def nearest_node(nodes: RoadGraph | Sequence[GraphNode], point: Coordinate) -> GraphNode:
    """Brute-force nearest node by haversine distance; first-seen wins ties."""
    candidates = nodes.nodes if isinstance(nodes, RoadGraph) else nodes
    if not candidates:
        raise ValueError("nearest_node requires at least one candidate node")
    best = candidates[0]
    best_m = haversine_m(point, best.position)
    for node in candidates[1:]:
        dist = haversine_m(point, node.position)
        if dist < best_m:
            best = node
            best_m = dist
    return best
