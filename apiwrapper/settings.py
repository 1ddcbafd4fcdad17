"""Settings loaded from the environment (``APIWRAPPER_*`` variables or a .env file)."""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration of the remote API connection.

    Environment variables:
    - APIWRAPPER_BASE_URL: entrypoint of the API, e.g. https://api.example.com/v1
    - APIWRAPPER_TOKEN: bearer token; requests are unauthenticated when empty
    - APIWRAPPER_TIMEOUT: seconds, passed to httpx
    - APIWRAPPER_USE_CACHE: cache reads per Api instance
    - APIWRAPPER_STRICT_GROUPING: validate group by / select / order by consistency
    """

    model_config = SettingsConfigDict(
        env_prefix="APIWRAPPER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = "http://localhost"
    token: Optional[str] = None
    timeout: float = 30.0
    use_cache: bool = True
    strict_grouping: bool = True

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")
