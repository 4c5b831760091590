from __future__ import annotations

import random
from collections.abc import Sequence

from .geodesy import Coordinate


def interpolate_segment(
    start: Coordinate,
    end: Coordinate,
    *,
    point_count: int = 10,
    jitter_deg: float = 0.01,
    rng: random.Random | None = None,
) -> list[Coordinate]:
    """`point_count` points from `start` to `end`, exact at both ends.

    Interior points sit on the straight line, each axis displaced by up to
    `jitter_deg / 2` so the synthetic route does not render perfectly straight.
    """
    rng = rng or random.Random()
    point_count = max(2, int(point_count))
    path: list[Coordinate] = [start]
    steps = point_count - 1
    for idx in range(1, steps):
        ratio = idx / steps
        lon = start[0] + (end[0] - start[0]) * ratio + (rng.random() - 0.5) * jitter_deg
        lat = start[1] + (end[1] - start[1]) * ratio + (rng.random() - 0.5) * jitter_deg
        path.append((lon, lat))
    path.append(end)
    return path


def synthesize_fallback_path(
    stops: Sequence[Coordinate],
    *,
    points_per_segment: int = 10,
    jitter_deg: float = 0.01,
    rng: random.Random | None = None,
) -> list[Coordinate]:
    """Interpolated path through every stop in order; shared stops appear once."""
    rng = rng or random.Random()
    if len(stops) < 2:
        return list(stops)
    path: list[Coordinate] = []
    for idx in range(len(stops) - 1):
        segment = interpolate_segment(
            stops[idx],
            stops[idx + 1],
            point_count=points_per_segment,
            jitter_deg=jitter_deg,
            rng=rng,
        )
        path.extend(segment if idx == 0 else segment[1:])
    return path
