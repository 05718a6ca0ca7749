"""
Configuration for the SNMP telemetry collector.

Two layers:

- process settings, loaded with pydantic-settings (Pydantic v2) from
  environment variables and a local `.env` file;
- the targets file (JSON list, path in TARGETS_CONF) describing the devices
  to poll, validated with pydantic models.
"""

import json
import re
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Raised when the settings or the targets file cannot be loaded."""


class Settings(BaseSettings):
    """
    Application-wide settings.

    Environment variables (with defaults):

    - TARGETS_CONF:          Path to the JSON targets file (no default)
    - VERBOSE:               "1" to log every SNMP response processed
    - DATABASE_URL:          SQLAlchemy URL, default SQLite file "metrics.db"
    - METRIC_TYPE_PREFIX:    Prefix of every metric type written
    - SNMP_PORT:             UDP port used when a target does not set one
    - SNMP_TIMEOUT_SECONDS:  Per-request timeout (default: 2)
    - SNMP_RETRIES:          Retries per request (default: 3)
    - SNMP_MAX_REPETITIONS:  GETBULK max-repetitions used while walking
    - SNMP_MAX_OIDS:         Max OIDs sent in a single GET PDU
    """

    targets_conf: Optional[Path] = None
    verbose: bool = False

    database_url: str = "sqlite:///./metrics.db"
    metric_type_prefix: str = "custom/snmp"

    snmp_port: int = 161
    snmp_timeout_seconds: float = 2.0
    snmp_retries: int = 3
    snmp_max_repetitions: int = 25
    snmp_max_oids: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Targets file
# ---------------------------------------------------------------------------

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": timedelta(microseconds=0.001),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration such as "30s", "1m30s", "1.5h" or "500ms".

    A bare "0" is accepted, anything else without a unit is rejected.
    """
    text = value.strip()
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError("empty duration")

    total = timedelta(0)
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


class _FileModel(BaseModel):
    # Keys can be written either as in this model or in the capitalised form
    # used by older targets files ("Name", "IP", "StorageFilter", ...).
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WirelessClientConfig(_FileModel):
    name: str = Field(default="", alias="Name")
    mac: str = Field(alias="MAC")


class MikrotikConfig(_FileModel):
    wireless_clients: List[WirelessClientConfig] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "wireless_clients", "WirelessClientMACs", "WirelessClients"
        ),
    )

    @field_validator("wireless_clients", mode="before")
    @classmethod
    def parse_clients(cls, v):
        """
        Allow bare MAC strings next to {name, mac} objects:

        - ["AA:BB:CC:00:11:02"]                    -> [{mac: ...}]
        - [{"name": "laptop", "mac": "AA:..."}]    -> as-is
        """
        if isinstance(v, list):
            return [{"mac": item} if isinstance(item, str) else item for item in v]
        return v


class ExtensionsConfig(_FileModel):
    mikrotik: Optional[MikrotikConfig] = Field(default=None, alias="Mikrotik")


class TargetConfig(_FileModel):
    """One device entry of the targets file."""

    name: str = Field(alias="Name")
    ip: str = Field(alias="IP")
    community: str = Field(default="public", alias="Community")
    port: Optional[int] = Field(default=None, alias="Port")
    interfaces: List[str] = Field(default_factory=list, alias="Interfaces")
    storage_filter: List[str] = Field(default_factory=list, alias="StorageFilter")
    frequency: str = Field(default="60s", alias="Frequency")
    extensions: Optional[ExtensionsConfig] = Field(default=None, alias="Extensions")

    @field_validator("frequency")
    @classmethod
    def check_frequency(cls, v: str) -> str:
        if parse_duration(v) <= timedelta(0):
            raise ValueError(f"frequency must be positive, got {v!r}")
        return v

    @property
    def interval(self) -> timedelta:
        return parse_duration(self.frequency)

    @property
    def wireless(self) -> Optional[MikrotikConfig]:
        if self.extensions is None:
            return None
        return self.extensions.mikrotik


def parse_targets(data: Union[str, bytes, list]) -> List[TargetConfig]:
    """Validate targets from JSON text or an already decoded list."""
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"targets file is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ConfigError("targets file must contain a JSON list of targets")

    targets = []
    for pos, entry in enumerate(data):
        try:
            targets.append(TargetConfig.model_validate(entry))
        except ValidationError as exc:
            raise ConfigError(f"invalid target #{pos}: {exc}") from exc

    names = [t.name for t in targets]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"duplicate target names: {', '.join(duplicates)}")
    return targets


def load_targets(path: Union[str, Path]) -> List[TargetConfig]:
    """Read and validate the targets file at `path`."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read targets file {path}: {exc}") from exc
    return parse_targets(raw)


# Single global settings object
settings = Settings()
