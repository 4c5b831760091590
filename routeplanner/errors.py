from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FALLBACK_REASON_CODES: frozenset[str] = frozenset(
    {
        "mode_not_graph_routable",
        "road_features_missing",
        "road_graph_empty",
        "road_graph_no_path",
        "road_graph_failed",
    }
)

ROUTE_RETRY_MESSAGE = "route computation failed, please retry"


@dataclass
class RouteInputError(ValueError):
    field: str
    message: str
    reason_code: str = "route_input_invalid"

    def __str__(self) -> str:
        return self.message


@dataclass
class RouteComputationError(RuntimeError):
    message: str = ROUTE_RETRY_MESSAGE
    reason_code: str = "route_compute_failed"
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


def normalize_fallback_reason(reason_code: str, *, default: str = "road_graph_failed") -> str:
    code = str(reason_code or "").strip()
    if code in FALLBACK_REASON_CODES:
        return code
    return default
