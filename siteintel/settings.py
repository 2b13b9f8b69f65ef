import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Upstream credentials
    bls_api_key: str = Field(default="", alias="BLS_API_KEY")
    bea_api_key: str = Field(default="", alias="BEA_API_KEY")
    fred_api_key: str = Field(default="", alias="FRED_API_KEY")
    fbi_crime_api_key: str = Field(default="", alias="FBI_CRIME_API_KEY")
    noaa_api_token: str = Field(default="", alias="NOAA_API_TOKEN")
    foursquare_api_key: str = Field(default="", alias="FOURSQUARE_API_KEY")
    census_api_key: str = Field(default="", alias="CENSUS_API_KEY")
    hud_api_token: str = Field(default="", alias="HUD_API_TOKEN")

    # Circuit breaker
    breaker_failure_threshold: int = Field(
        default=5, ge=1, alias="BREAKER_FAILURE_THRESHOLD"
    )
    breaker_cooldown_seconds: float = Field(
        default=300.0, gt=0, alias="BREAKER_COOLDOWN_SECONDS"
    )

    # Retry defaults
    retry_max_attempts: int = Field(default=3, ge=1, alias="RETRY_MAX_ATTEMPTS")
    retry_base_delay: float = Field(default=1.0, ge=0, alias="RETRY_BASE_DELAY")
    retry_max_delay: float = Field(default=10.0, ge=0, alias="RETRY_MAX_DELAY")
    request_timeout: float = Field(default=15.0, gt=0, alias="REQUEST_TIMEOUT")

    # Cache
    cache_max_size: int = Field(default=2048, ge=1, alias="CACHE_MAX_SIZE")
    cache_shards: int = Field(default=16, ge=1, alias="CACHE_SHARDS")
    cache_sweep_interval_minutes: int = Field(
        default=10, ge=1, alias="CACHE_SWEEP_INTERVAL"
    )

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    debug: bool = Field(default=False, alias="DEBUG")


global_settings = Settings.model_validate(dict(os.environ))
