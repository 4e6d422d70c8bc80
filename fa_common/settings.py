"""Process-wide tunables for fleetadm."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from fa_common.env import parse_bool_env, parse_float_env, parse_int_env
from fa_common.errors import ERR_INVALID_SETTINGS, ConfigurationError

DEFAULT_DATA_DIR = "~/.fleetadm"
SETTINGS_FILE_NAME = "fleetadm.yaml"


class FleetSettings(BaseModel):
    """Tunables shared by the engine, the transport and the RPC layer."""

    engine: str = Field(default="docker", description="Container engine binary on managed hosts")
    sudo_alias: str = Field(default="sudo", description="Prefix used for privileged commands")
    ssh_timeout: int = Field(default=10, gt=0, description="SSH connect timeout in seconds")
    command_timeout: Optional[int] = Field(
        default=None, gt=0, description="Timeout for one remote command; None waits forever"
    )
    concurrency: int = Field(
        default=0, ge=0, description="Default step concurrency; 0 runs one worker per task"
    )
    rpc_timeout: float = Field(default=10.0, gt=0, description="Per-call RPC timeout in seconds")
    rpc_retry_times: int = Field(default=3, ge=0, description="RPC retries after the first attempt")
    rpc_retry_delay: float = Field(default=0.2, ge=0, description="Seconds between RPC retries")
    data_dir: str = Field(default=DEFAULT_DATA_DIR, description="Local state directory")
    log_level: Optional[str] = Field(default=None, description="Log level name")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")
    log_json: Optional[bool] = Field(default=None, description="Render logs as JSON")

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    def sudo(self) -> str:
        return self.sudo_alias.strip()

    def engine_command(self, args: str) -> str:
        """Prefix ``args`` with the privileged container engine."""
        prefix = f"{self.sudo()} {self.engine}".strip()
        return f"{prefix} {args}"


_ENV_OVERRIDES: Dict[str, tuple[str, Callable[[str | None], Any]]] = {
    "FA_ENGINE": ("engine", lambda v: v),
    "FA_SUDO_ALIAS": ("sudo_alias", lambda v: v),
    "FA_SSH_TIMEOUT": ("ssh_timeout", parse_int_env),
    "FA_COMMAND_TIMEOUT": ("command_timeout", parse_int_env),
    "FA_CONCURRENCY": ("concurrency", parse_int_env),
    "FA_RPC_TIMEOUT": ("rpc_timeout", parse_float_env),
    "FA_RPC_RETRY_TIMES": ("rpc_retry_times", parse_int_env),
    "FA_RPC_RETRY_DELAY": ("rpc_retry_delay", parse_float_env),
    "FA_DATA_DIR": ("data_dir", lambda v: v),
    "FA_LOG_LEVEL": ("log_level", lambda v: v),
    "FA_LOG_FILE": ("log_file", lambda v: v),
    "FA_LOG_JSON": ("log_json", parse_bool_env),
}


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_name, (field_name, parser) in _ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None:
            continue
        value = parser(raw)
        if value is None:
            raise ConfigurationError(
                f"Invalid value for {env_name}: {raw!r}",
                code=ERR_INVALID_SETTINGS,
                context={"env": env_name},
            )
        overrides[field_name] = value
    return overrides


def resolve_settings_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    explicit = env.get("FA_CONFIG")
    if explicit:
        return Path(explicit).expanduser()
    data_dir = env.get("FA_DATA_DIR") or DEFAULT_DATA_DIR
    return Path(data_dir).expanduser() / SETTINGS_FILE_NAME


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> FleetSettings:
    """Load settings from YAML (when present) and apply ``FA_*`` overrides."""
    env = os.environ if environ is None else environ
    settings_path = path or resolve_settings_path(env)
    data: dict[str, Any] = {}
    if settings_path.exists():
        try:
            data = yaml.safe_load(settings_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ERR_INVALID_SETTINGS.e(exc, error_cls=ConfigurationError) from exc
        if not isinstance(data, dict):
            raise ERR_INVALID_SETTINGS.f(
                "%s must contain a mapping", settings_path, error_cls=ConfigurationError
            )
    data.update(_env_overrides(env))
    try:
        return FleetSettings.model_validate(data)
    except ValidationError as exc:
        raise ERR_INVALID_SETTINGS.e(exc, error_cls=ConfigurationError) from exc
