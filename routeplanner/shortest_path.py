from __future__ import annotations

import heapq
from dataclasses import dataclass
from math import inf

from .geodesy import Coordinate
from .road_graph import RoadGraph


@dataclass(frozen=True)
class PathResult:
    nodes: tuple[int, ...]
    cost: float
    coordinates: tuple[Coordinate, ...]


class PathNotFoundError(ValueError):
    pass


def dijkstra(graph: RoadGraph, source: int, target: int) -> PathResult:
    """Minimum-weight path from `source` to `target`.

    The returned coordinates stitch together the stored geometry of every edge
    on the path, so the result follows the road shape rather than straight
    lines between nodes. Raises PathNotFoundError when the target cannot be
    reached.
    """
    node_count = len(graph.nodes)
    if not (0 <= source < node_count) or not (0 <= target < node_count):
        raise PathNotFoundError("source/target not in graph")

    dist: dict[int, float] = {source: 0.0}
    prev: dict[int, int] = {}
    edge_coords: dict[tuple[int, int], tuple[Coordinate, ...]] = {}
    visited: set[int] = set()
    # Counter keeps equal-distance pops in insertion order.
    heap: list[tuple[float, int, int]] = [(0.0, 0, source)]
    pushes = 1

    while heap:
        current_dist, _seq, current = heapq.heappop(heap)
        if current in visited or current_dist > dist.get(current, inf):
            continue
        if current == target:
            break
        visited.add(current)
        for edge in graph.nodes[current].edges:
            if edge.to in visited:
                continue
            candidate = current_dist + edge.weight_m
            if candidate < dist.get(edge.to, inf):
                dist[edge.to] = candidate
                prev[edge.to] = current
                edge_coords[(current, edge.to)] = edge.coordinates
                heapq.heappush(heap, (candidate, pushes, edge.to))
                pushes += 1

    if target != source and target not in prev:
        raise PathNotFoundError("no path")

    node_path: list[int] = [target]
    coordinates: list[Coordinate] = []
    node = target
    while node != source:
        pred = prev[node]
        coordinates[:0] = edge_coords[(pred, node)]
        node_path.append(pred)
        node = pred
    if not coordinates:
        coordinates.append(graph.nodes[source].position)
    node_path.reverse()
    return PathResult(
        nodes=tuple(node_path),
        cost=float(dist.get(target, 0.0)),
        coordinates=tuple(coordinates),
    )


def shortest_path(graph: RoadGraph, source: int, target: int) -> list[Coordinate] | None:
    """Coordinate path between two nodes, or None when the target is unreachable."""
    try:
        result = dijkstra(graph, source, target)
    except PathNotFoundError:
        return None
    return list(result.coordinates)
