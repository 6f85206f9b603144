"""Centralized configuration: Pydantic BaseSettings read from ``OPENCLAW_*`` variables.

Every knob the pod script has always honoured is a field here, so
``OPENCLAW_POD_NAME=test openclaw-pod start`` keeps working. The secrets
file (``OPENCLAW_ENV_FILE``) is *not* a settings source: it is parsed by
:mod:`openclaw_pod.envfile` and only supplies defaults for keys the
calling environment has not exported.

Priority (highest wins): init args > env vars > env file

Usage::

    from openclaw_pod.config import get_settings

    s = get_settings()
    print(s.pod_name, s.gateway_container)
"""

from __future__ import annotations

from functools import cached_property
from pathlib import Path

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

GATEWAY_TOKEN_KEY = "OPENCLAW_GATEWAY_TOKEN"

# Ports the processes listen on inside the pod
GATEWAY_CONTAINER_PORT = 18789
NOVNC_CONTAINER_PORT = 6080
CDP_CONTAINER_PORT = 9222


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="OPENCLAW_",
        extra="ignore",
    )

    pod_name: str = "openclaw"
    gw_image: str = "openclaw-gateway:local"
    br_image: str = "openclaw-browser:local"

    config_dir: Path = Path("~/.openclaw")
    workspace_dir: Path | None = None  # None → <config_dir>/workspace
    browser_data_dir: Path | None = None  # None → <config_dir>/browser-data
    env_file: Path | None = None  # None → <config_dir>/.env
    env_file_required: bool = False

    gateway_port: int = 18789
    novnc_port: int = 6080
    gateway_bind: str = "lan"
    gateway_token: SecretStr | None = None

    runtime: str | None = None  # provider name override, e.g. "podman"

    # Sidecar readiness policy
    probe_interval: float = Field(default=0.5, gt=0)
    probe_max_attempts: int = Field(default=60, ge=1)
    probe_timeout: float = Field(default=1.0, gt=0)
    strict_readiness: bool = False

    @field_validator("pod_name")
    @classmethod
    def validate_pod_name(cls, v: str) -> str:
        name = v.strip()
        if not name:
            raise ValueError("pod_name cannot be empty")
        return name

    @field_validator("gateway_port", "novnc_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(f"port must be in 1..65535, got {v}")
        return v

    @model_validator(mode="after")
    def _derive_paths(self) -> Settings:
        self.config_dir = self.config_dir.expanduser()
        if self.workspace_dir is None:
            self.workspace_dir = self.config_dir / "workspace"
        if self.browser_data_dir is None:
            self.browser_data_dir = self.config_dir / "browser-data"
        if self.env_file is None:
            self.env_file = self.config_dir / ".env"
        self.workspace_dir = self.workspace_dir.expanduser()
        self.browser_data_dir = self.browser_data_dir.expanduser()
        self.env_file = self.env_file.expanduser()
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars. The secrets file is handled by envfile."""
        return (init_settings, env_settings)

    # --- Computed properties ---

    @cached_property
    def gateway_container(self) -> str:
        return f"{self.pod_name}-gateway"

    @cached_property
    def browser_container(self) -> str:
        return f"{self.pod_name}-browser"

    @cached_property
    def host_directories(self) -> tuple[Path, ...]:
        return (self.config_dir, self.workspace_dir, self.browser_data_dir)

    @cached_property
    def gateway_url(self) -> str:
        return f"http://127.0.0.1:{self.gateway_port}/"

    @cached_property
    def novnc_url(self) -> str:
        return f"http://127.0.0.1:{self.novnc_port}/vnc.html"

    @cached_property
    def cdp_probe_url(self) -> str:
        return f"http://127.0.0.1:{CDP_CONTAINER_PORT}/json/version"


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings  # noqa: PLW0603
    _settings = None
