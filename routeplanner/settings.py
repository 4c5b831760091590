from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping tunables out of the routing code."""

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default="out", alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Road-network geometry source (WFS GetFeature, GeoJSON output)
    wfs_base_url: str = Field(
        default="http://gisserver.tianditu.gov.cn/TDTService/wfs",
        alias="WFS_BASE_URL",
    )
    wfs_api_key: str = Field(default="", alias="WFS_API_KEY")
    wfs_timeout_s: float = Field(default=30.0, ge=1.0, le=120.0, alias="WFS_TIMEOUT_S")
    road_bbox_padding_deg: float = Field(default=0.05, ge=0.0, le=1.0, alias="ROAD_BBOX_PADDING_DEG")

    # Route composition constants
    turn_angle_threshold_deg: float = Field(default=20.0, alias="TURN_ANGLE_THRESHOLD_DEG")
    fallback_points_per_segment: int = Field(default=10, alias="FALLBACK_POINTS_PER_SEGMENT")
    # Full jitter width; interior fallback points move by at most half of it per axis.
    fallback_jitter_deg: float = Field(default=0.01, ge=0.0, le=0.1, alias="FALLBACK_JITTER_DEG")
    waypoint_proximity_deg: float = Field(default=0.001, ge=0.0, alias="WAYPOINT_PROXIMITY_DEG")
    # Unset keeps one node pair per feature; a value merges endpoints within that tolerance.
    graph_merge_tolerance_deg: float | None = Field(default=None, ge=0.0, alias="GRAPH_MERGE_TOLERANCE_DEG")
    instruction_style: Literal["random", "bearing"] = Field(default="random", alias="INSTRUCTION_STYLE")

    @model_validator(mode="after")
    def _clamp_route_constants(self) -> "Settings":
        self.turn_angle_threshold_deg = max(0.0, min(180.0, float(self.turn_angle_threshold_deg)))
        self.fallback_points_per_segment = max(2, int(self.fallback_points_per_segment))
        return self


settings = Settings()
