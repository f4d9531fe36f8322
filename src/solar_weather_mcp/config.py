from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Providers
    openweather_api_key: Optional[str] = None
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    openweather_onecall_url: Optional[str] = "https://api.openweathermap.org/data/3.0/onecall"
    air_quality_enabled: bool = True
    open_meteo_base_url: str = "https://api.open-meteo.com/v1"
    request_timeout_seconds: float = 5.0

    # Pipeline
    pipeline_deadline_seconds: float = 12.0
    staleness_threshold_seconds: int = 1800
    cache_ttl_seconds: float = 600.0
    cache_max_entries: int = 1024

    # Plant
    plant_capacity_kw: float = 100000.0
    panel_base_efficiency: float = 0.18
    temperature_loss_per_c: float = 0.004

    # Drone fleet
    drone_max_wind_speed_ms: float = 12.0
    drone_min_visibility_m: float = 5000.0
    drone_max_precipitation_mm_h: float = 0.5

    # Cleaning robots
    robot_max_temperature_c: float = 30.0
    robot_max_wind_speed_ms: float = 8.0
    robot_min_humidity_pct: float = 30.0
    robot_max_uv_index: float = 10.0

    # Grid dispatch
    grid_max_cloud_cover_pct: float = 70.0

    port: int = 8001


config = Config()
