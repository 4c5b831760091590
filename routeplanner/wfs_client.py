from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import httpx

from .geodesy import Coordinate
from .logging_utils import log_event

BBox = tuple[float, float, float, float]  # min_lon, min_lat, max_lon, max_lat


class LayerType(str, Enum):
    ROAD = "LRDL"
    RAILWAY = "LRRL"


class WFSError(RuntimeError):
    pass


def road_network_bbox(start: Coordinate, end: Coordinate, *, padding_deg: float = 0.05) -> BBox:
    """Bounding box around two points, grown by `padding_deg` on every side."""
    return (
        min(start[0], end[0]) - padding_deg,
        min(start[1], end[1]) - padding_deg,
        max(start[0], end[0]) + padding_deg,
        max(start[1], end[1]) + padding_deg,
    )


def _format_wfs_error(resp: httpx.Response) -> str:
    """Best-effort decode of WFS error payloads."""
    try:
        data = resp.json()
        if isinstance(data, dict):
            message = data.get("message") or data.get("error")
            if message:
                return f"WFS {resp.status_code}: {message}"
    except ValueError:
        pass

    body = (resp.text or "").strip().replace("\n", " ")
    if len(body) > 240:
        body = body[:240] + "..."
    if body:
        return f"WFS {resp.status_code}: {body}"
    return f"WFS HTTP {resp.status_code}"


class WFSClient:
    """Fetches line features for a bounding box from a WFS GetFeature endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s, connect=min(10.0, timeout_s)),
            headers={"accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _params(self, bbox: BBox, layer: LayerType) -> dict[str, str]:
        params = {
            "service": "WFS",
            "version": "1.1.0",
            "request": "GetFeature",
            "typename": layer.value,
            "outputFormat": "application/json",
            "srsName": "EPSG:4326",
            "bbox": ",".join(str(v) for v in bbox) + ",EPSG:4326",
        }
        if self.api_key:
            params["tk"] = self.api_key
        return params

    async def get_features(self, bbox: BBox, layer: LayerType = LayerType.ROAD) -> list[dict[str, Any]]:
        """Raw GeoJSON features for `bbox`; raises WFSError on any failure."""
        try:
            resp = await self._client.get(self.base_url, params=self._params(bbox, layer))
        except httpx.HTTPError as e:
            raise WFSError(f"WFS request failed: {type(e).__name__}: {e}") from e
        if resp.status_code != 200:
            raise WFSError(_format_wfs_error(resp))
        try:
            data = resp.json()
        except ValueError as e:
            raise WFSError("WFS returned a non-JSON payload") from e
        if not isinstance(data, dict):
            raise WFSError("WFS payload is not a GeoJSON object")
        features = data.get("features")
        if not isinstance(features, list):
            raise WFSError("WFS payload missing features")
        return [f for f in features if isinstance(f, dict)]

    async def fetch_line_features(self, bbox: BBox, layer: LayerType = LayerType.ROAD) -> list[dict[str, Any]]:
        """Like get_features, but any failure is logged and yields an empty list."""
        try:
            return await self.get_features(bbox, layer)
        except WFSError as e:
            log_event(
                "wfs_fetch_failed",
                level=logging.WARNING,
                layer=layer.value,
                bbox=list(bbox),
                error=str(e),
            )
            return []

    async def fetch_road_network(
        self,
        start: Coordinate,
        end: Coordinate,
        *,
        padding_deg: float = 0.05,
    ) -> list[dict[str, Any]]:
        bbox = road_network_bbox(start, end, padding_deg=padding_deg)
        return await self.fetch_line_features(bbox, LayerType.ROAD)
