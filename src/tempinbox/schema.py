"""Pydantic schema for ~/.tempinbox/config.yaml

Default values here MUST match the canonical constants in conventions.py.
conventions.py is the source of truth for fixed names and thresholds;
this schema defines the shape of config.yaml.
"""

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Settings for `tempinbox serve`."""

    # Source of truth: conventions.SERVER_DEFAULT_HOST / SERVER_DEFAULT_PORT
    host: str = "127.0.0.1"
    port: int = 8410


class TempInboxConfig(BaseModel):
    # Source of truth: conventions.DEFAULT_API_BASE_URL
    api_base_url: str = "https://api.mail.tm"
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    # Fixed lifetime used for progress reporting and the local TTL.
    session_lifetime_seconds: int = Field(default=3600, gt=0)
    tick_interval_seconds: float = Field(default=1.0, gt=0)
    poll_interval_seconds: int = Field(default=10, gt=0)

    auto_create: bool = True
    preferred_domain: str = ""
    # Stamp created + lifetime when the backend reports no expiry.
    enforce_local_ttl: bool = True

    simulator_mode: bool = False
    log_level: str = "INFO"

    server: ServerConfig = Field(default_factory=ServerConfig)
