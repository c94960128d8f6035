# ============================================================
# File: config.py - Application settings
# ============================================================
# pydantic-settings based configuration.
# Priority (high to low):
#   1. config file (YAML/JSON, CONFIG_FILE env var)
#   2. .env file / environment variables
#   3. defaults
# ============================================================

import json
import os
import sys
from pathlib import Path
from functools import lru_cache
from typing import Optional, Dict, Any, Union

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.exceptions import ConfigError


# ------------------------------------------------------------
# Application root (supports frozen builds)
# ------------------------------------------------------------
def get_app_root() -> Path:
    """Directory holding .env and config.yaml

    Source run: project root
    Frozen run: directory of the executable
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    return Path(__file__).parent


APP_ROOT = get_app_root()

DEFAULT_CONFIG_FILE = "config.yaml"

# Keys used by the older JSON config files
LEGACY_KEYS = {
    "PlcIP": "plc_ip",
    "PlcPort": "plc_port",
    "InfluxDBURL": "influx_url",
    "InfluxDBHealth": "influx_health_url",
    "InfluxDBToken": "influx_token",
    "InfluxDBOrg": "influx_org",
    "InfluxDBBucket": "influx_bucket",
    "ReconnectDelay": "reconnect_delay",
    "WriteToInfluxDB": "write_to_influxdb",
    "WebServer": "web_server",
}


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=str(APP_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # HTTP server
    server_host: str = "0.0.0.0"
    server_port: int = Field(8080, ge=1, le=65535)

    # Feature toggles
    web_server: bool = True
    write_to_influxdb: bool = True
    mock_mode: bool = False
    # Retry the pre-flight probes instead of exiting
    wait_for_endpoints: bool = False

    # PLC
    plc_ip: str = "192.168.33.100"
    plc_port: int = Field(102, ge=1, le=65535)
    plc_rack: int = 0
    plc_slot: int = 1
    plc_timeout: int = Field(5000, gt=0)  # ms
    plc_poll_interval: float = Field(1.0, gt=0)  # seconds
    plc_probe_timeout: float = Field(3.0, gt=0)  # seconds
    reconnect_delay: float = Field(5.0, ge=0)  # seconds

    # InfluxDB
    influx_url: str = "http://localhost:8086"
    influx_health_url: Optional[str] = None
    influx_token: str = ""
    influx_org: str = "DAFRA"
    influx_bucket: str = "PLC_READ"
    influx_timeout: int = Field(5000, gt=0)  # ms
    influx_measurement: str = "temperature"
    influx_host_tag: str = "plc"

    # Logging
    log_dir: str = "logs"
    log_level: str = "INFO"

    @field_validator('web_server', 'write_to_influxdb', 'mock_mode', 'wait_for_endpoints', mode='before')
    @classmethod
    def parse_bool(cls, v):
        """Accept the usual string spellings of booleans"""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            v_lower = v.strip().lower()
            if v_lower in ('true', '1', 'yes', 'on'):
                return True
            if v_lower in ('false', '0', 'no', 'off', ''):
                return False
            raise ValueError(f"invalid boolean value: {v!r}")
        return bool(v)

    @field_validator('log_level')
    @classmethod
    def parse_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"invalid log level: {v!r}")
        return level

    @property
    def health_url(self) -> str:
        """InfluxDB readiness endpoint (defaults to <influx_url>/health)"""
        if self.influx_health_url:
            return self.influx_health_url
        return self.influx_url.rstrip("/") + "/health"


# ------------------------------------------------------------
# Config file loading
# ------------------------------------------------------------
def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML or JSON config document and normalise legacy keys

    Raises:
        ConfigError: file missing, unreadable or not a mapping
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"config file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")

    return {LEGACY_KEYS.get(k, k): v for k, v in data.items()}


def load_settings(config_file: Optional[Union[str, Path]] = None, **overrides: Any) -> Settings:
    """Build Settings from an optional config file plus overrides

    Args:
        config_file: YAML/JSON file; None means environment and defaults only
        **overrides: values applied on top of the file

    Raises:
        ConfigError: file problems or validation failure
    """
    values: Dict[str, Any] = {}
    if config_file is not None:
        values.update(read_config_file(config_file))
    values.update(overrides)

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


def resolve_config_file() -> Optional[Path]:
    """Config file to load at startup

    CONFIG_FILE must exist when it is set explicitly; the default
    config.yaml beside the app is optional.
    """
    explicit = os.environ.get("CONFIG_FILE")
    if explicit:
        return Path(explicit)

    default_path = APP_ROOT / DEFAULT_CONFIG_FILE
    if default_path.is_file():
        return default_path
    return None


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings singleton"""
    return load_settings(resolve_config_file())
