from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .errors import ROUTE_RETRY_MESSAGE, RouteComputationError, RouteInputError
from .logging_utils import log_event
from .models import RouteRequest, RouteResponse, route_to_geojson
from .route_composer import GRAPH_ROUTED_MODES, compose_route
from .settings import settings
from .wfs_client import WFSClient


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.wfs = WFSClient(
        base_url=settings.wfs_base_url,
        api_key=settings.wfs_api_key,
        timeout_s=settings.wfs_timeout_s,
    )
    yield
    await app.state.wfs.aclose()


app = FastAPI(title="Route Planner", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def wfs_client(request: Request) -> WFSClient:
    wfs: WFSClient | None = getattr(request.app.state, "wfs", None)  # type: ignore[attr-defined]
    if wfs is None:
        raise HTTPException(status_code=503, detail="WFS client not initialised")
    return wfs


WFSDep = Annotated[WFSClient, Depends(wfs_client)]


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


async def _road_features(req: RouteRequest, wfs: WFSClient) -> Any:
    if req.features is not None:
        return req.features
    if req.mode not in GRAPH_ROUTED_MODES or req.start is None or req.end is None:
        return None
    try:
        return await asyncio.wait_for(
            wfs.fetch_road_network(
                req.start.lnglat,
                req.end.lnglat,
                padding_deg=settings.road_bbox_padding_deg,
            ),
            timeout=settings.wfs_timeout_s + 5.0,
        )
    except asyncio.TimeoutError:
        log_event("wfs_fetch_timeout", timeout_s=settings.wfs_timeout_s)
        return []


@app.post("/route", response_model=RouteResponse)
async def plan_route(req: RouteRequest, wfs: WFSDep) -> RouteResponse:
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()

    features = await _road_features(req, wfs)
    try:
        # Graph build and search are CPU-bound; keep them off the event loop.
        route = await asyncio.to_thread(
            compose_route,
            req.start,
            req.end,
            req.waypoints,
            req.mode,
            features,
        )
    except RouteInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except RouteComputationError as e:
        raise HTTPException(status_code=500, detail=ROUTE_RETRY_MESSAGE) from e

    log_event(
        "route_request",
        request_id=request_id,
        route_id=route.id,
        mode=route.mode,
        waypoint_count=len(req.waypoints),
        distance_m=route.distance,
        duration_s=route.duration,
        step_count=len(route.steps),
        fallback_used=route.fallback_used,
        fallback_reason=route.fallback_reason,
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return RouteResponse(route=route, geometry=route_to_geojson(route))
