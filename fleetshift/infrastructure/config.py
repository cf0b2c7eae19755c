"""
Configuration Module

Architectural Intent:
- Centralized configuration loading for one deployment invocation
- Provides typed access to every rollout setting
- Falls back to sensible defaults when the config file is absent
- Environment variables override file-based config

Design Decisions:
- Config file is JSON (fleetshift.json in CWD by default)
- Config is a frozen dataclass for immutability after load; the whole
  pipeline receives this one object instead of ambient process variables
- Nested config sections map to sub-dataclasses
- validate_config() is separate from loading so a no-op environment can be
  detected before required fields are enforced
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

from fleetshift.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

HEALTH_POLICIES = ("fail-open", "fail-closed")


@dataclass(frozen=True)
class ArtifactConfig:
    """Registry and image build configuration."""
    registry: str = "docker.io"
    username: str = ""
    password: str = field(default="", repr=False)
    image_name: str = "starttech-backend"
    tag: str = "latest"
    dockerfile: str = "./Server/Dockerfile"
    build_context: str = "./Server"
    scan_enabled: bool = True
    scan_severity: str = "CRITICAL,HIGH"
    skip_publish: bool = False


@dataclass(frozen=True)
class FleetConfig:
    """Fleet target and template naming configuration."""
    group_name: str = ""
    template_prefix: str = "starttech-backend"
    region: str = "us-east-1"
    create_template_if_missing: bool = True
    image_id: str = "ami-0c55b159cbfafe1f0"
    instance_type: str = "t3.micro"
    key_name: str = "starttech-key"


@dataclass(frozen=True)
class BootConfig:
    """What each replaced instance runs on startup."""
    container_name: str = "starttech-backend"
    port: int = 8080
    log_group: str = "/starttech/backend"
    registry_password_parameter: str = "/starttech/docker-hub-password"
    metrics_config: str = "ssm:AmazonCloudWatch-linux"
    passthrough_env: tuple[str, ...] = ("MONGODB_URL", "REDIS_URL")


@dataclass(frozen=True)
class RolloutConfig:
    """Rolling replacement policy and wait budget."""
    min_healthy_percentage: int = 90
    instance_warmup_seconds: int = 300
    skip_matching: bool = False
    skip_lb_excluded: bool = False
    standby_instances: str = "Ignore"
    poll_interval_seconds: float = 30.0
    timeout_seconds: float = 600.0


@dataclass(frozen=True)
class HealthConfig:
    """Post-rollout smoke test configuration."""
    endpoint: str = ""
    endpoint_parameter: str = "/starttech/alb-dns-name"
    path: str = "/health"
    max_attempts: int = 10
    attempt_spacing_seconds: float = 30.0
    probe_timeout_seconds: float = 10.0
    policy: str = "fail-open"


@dataclass(frozen=True)
class RecordConfig:
    """Deployment record sink."""
    db_path: str = "fleetshift.db"


@dataclass(frozen=True)
class NotificationsConfig:
    """Notification configuration."""
    slack_webhook_url: str = ""


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class FleetshiftConfig:
    """Root configuration for one deployment invocation."""
    environment: str = "production"
    operator: str = ""
    artifact: ArtifactConfig = field(default_factory=ArtifactConfig)
    fleet: FleetConfig = field(default_factory=FleetConfig)
    boot: BootConfig = field(default_factory=BootConfig)
    rollout: RolloutConfig = field(default_factory=RolloutConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    record: RecordConfig = field(default_factory=RecordConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"

    def with_overrides(self, **sections: dict) -> "FleetshiftConfig":
        """Return a copy with individual section fields replaced.

        ``config.with_overrides(fleet={"group_name": "asg"}, environment="staging")``
        """
        changes = {}
        for name, value in sections.items():
            current = getattr(self, name)
            if dataclasses.is_dataclass(current) and isinstance(value, dict):
                changes[name] = dataclasses.replace(current, **value)
            else:
                changes[name] = value
        return dataclasses.replace(self, **changes)


_SECTIONS = {
    "artifact": ArtifactConfig,
    "fleet": FleetConfig,
    "boot": BootConfig,
    "rollout": RolloutConfig,
    "health": HealthConfig,
    "record": RecordConfig,
    "notifications": NotificationsConfig,
    "telemetry": TelemetryConfig,
}

_ROOT_FIELDS = ("environment", "operator", "log_level")


def _env_override(data: dict, prefix: str = "FLEETSHIFT") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern FLEETSHIFT_SECTION_KEY.
    For example: FLEETSHIFT_FLEET_GROUP_NAME=backend-asg,
    FLEETSHIFT_ROLLOUT_TIMEOUT_SECONDS=900, FLEETSHIFT_ENVIRONMENT=staging
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in _ROOT_FIELDS:
            data[name] = value
            continue
        parts = name.split("_", 1)
        if len(parts) == 2 and parts[0] in _SECTIONS:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must hold a JSON object", path)
        return {}
    return data


def _coerce(value, type_name: str):
    if type_name == "tuple[str, ...]":
        if isinstance(value, str):
            return tuple(v.strip() for v in value.split(",") if v.strip())
        if isinstance(value, list):
            return tuple(value)
        return value
    if not isinstance(value, str):
        if type_name == "float" and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        return value
    if type_name == "int":
        return int(value)
    if type_name == "float":
        return float(value)
    if type_name == "bool":
        return value.lower() in ("true", "1", "yes")
    return value


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    if not isinstance(data, dict):
        return cls()
    types = {f.name: f.type for f in dataclasses.fields(cls)}
    filtered = {}
    for key, value in data.items():
        if key not in types:
            continue
        try:
            filtered[key] = _coerce(value, types[key])
        except ValueError as e:
            raise ConfigurationError(f"{cls.__name__}.{key}: {e}") from e
    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "FLEETSHIFT",
) -> FleetshiftConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (FLEETSHIFT_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to fleetshift.json in CWD.
        env_prefix: Environment variable prefix. Defaults to FLEETSHIFT.
    """
    config_path = Path(path) if path else Path("fleetshift.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    sections = {
        name: _build_sub_config(cls, data.get(name, {}))
        for name, cls in _SECTIONS.items()
    }
    return FleetshiftConfig(
        environment=str(data.get("environment", "production")),
        operator=str(data.get("operator", "")),
        log_level=str(data.get("log_level", "WARNING")),
        **sections,
    )


def validate_config(config: FleetshiftConfig) -> None:
    """Raise ConfigurationError naming every problem found.

    Called after the environment has been found supported and before any
    external call is issued.
    """
    problems = []
    if not config.artifact.username:
        problems.append("artifact.username is required")
    if not config.artifact.image_name:
        problems.append("artifact.image_name is required")
    if not config.fleet.group_name:
        problems.append("fleet.group_name is required")
    if not config.fleet.template_prefix:
        problems.append("fleet.template_prefix is required")
    if not 0 <= config.rollout.min_healthy_percentage <= 100:
        problems.append("rollout.min_healthy_percentage must be within 0..100")
    if config.rollout.standby_instances not in ("Ignore", "Terminate", "Wait"):
        problems.append("rollout.standby_instances must be Ignore, Terminate or Wait")
    if config.rollout.instance_warmup_seconds < 0:
        problems.append("rollout.instance_warmup_seconds cannot be negative")
    if config.rollout.poll_interval_seconds <= 0:
        problems.append("rollout.poll_interval_seconds must be positive")
    if config.rollout.timeout_seconds <= 0:
        problems.append("rollout.timeout_seconds must be positive")
    if config.health.max_attempts < 1:
        problems.append("health.max_attempts must be at least 1")
    if config.health.attempt_spacing_seconds < 0:
        problems.append("health.attempt_spacing_seconds cannot be negative")
    if config.health.policy not in HEALTH_POLICIES:
        problems.append(
            f"health.policy must be one of {', '.join(HEALTH_POLICIES)}, "
            f"got {config.health.policy!r}"
        )
    if problems:
        raise ConfigurationError("; ".join(problems))
