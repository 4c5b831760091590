from __future__ import annotations

from collections.abc import Sequence

from .geodesy import Coordinate, angle_difference_deg, bearing_deg

DEFAULT_TURN_THRESHOLD_DEG = 20.0


def turn_angle_at(path: Sequence[Coordinate], idx: int) -> float:
    """Signed heading change at interior index `idx` (positive = right turn)."""
    incoming = bearing_deg(path[idx - 1], path[idx])
    outgoing = bearing_deg(path[idx], path[idx + 1])
    return angle_difference_deg(incoming, outgoing)


def simplify_path(
    path: Sequence[Coordinate],
    *,
    threshold_deg: float = DEFAULT_TURN_THRESHOLD_DEG,
) -> list[int]:
    """Indices of the key points of `path`.

    Always brackets the path with its first and last index; interior points are
    kept where the heading turns by more than `threshold_deg`.
    """
    n = len(path)
    if n == 0:
        return []
    if n <= 2:
        return list(range(n))
    key_points = [0]
    for idx in range(1, n - 1):
        if abs(turn_angle_at(path, idx)) > threshold_deg:
            key_points.append(idx)
    key_points.append(n - 1)
    return key_points
