"""Runtime settings for ehrmap."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from ehrmap.conversion.mapper import TransformOptions
from ehrmap.core.types import ErrorPolicy, MissingRequiredPolicy

load_dotenv()


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return _parse_flag(value)


def default_registry_dir() -> Path:
    """Get default registry directory."""
    # Look for the registry relative to the source checkout
    package_dir = Path(__file__).parent.parent.parent / "registry"
    if package_dir.exists():
        return package_dir
    return Path.cwd() / "registry"


@dataclass
class Settings:
    """Settings read from the environment, optionally overlaid by a YAML file."""

    registry_dir: Path
    log_level: str = "WARNING"
    missing_required: MissingRequiredPolicy = MissingRequiredPolicy.DEFAULT
    on_error: ErrorPolicy = ErrorPolicy.RAISE
    strict: bool = False
    audit_log: Path | None = None

    @classmethod
    def from_env(cls) -> Settings:
        registry_dir = os.getenv("EHRMAP_REGISTRY_DIR")
        audit_log = os.getenv("EHRMAP_AUDIT_LOG")
        return cls(
            registry_dir=Path(registry_dir) if registry_dir else default_registry_dir(),
            log_level=os.getenv("EHRMAP_LOG_LEVEL", "WARNING").upper(),
            missing_required=MissingRequiredPolicy(
                os.getenv("EHRMAP_MISSING_REQUIRED", "default").lower()
            ),
            on_error=ErrorPolicy(os.getenv("EHRMAP_ON_ERROR", "raise").lower()),
            strict=_env_flag("EHRMAP_STRICT"),
            audit_log=Path(audit_log) if audit_log else None,
        )

    def overlay(self, path: str | Path) -> Settings:
        """Return settings updated with the keys of a YAML config file.

        Raises:
            FileNotFoundError: If the config file doesn't exist.
            ValueError: If the file has unknown keys or invalid policy values.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}

        known = {f.name for f in fields(self)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in data.items():
            if key == "registry_dir":
                if value:
                    values[key] = Path(value)
            elif key == "audit_log":
                values[key] = Path(value) if value else None
            elif key == "missing_required":
                values[key] = MissingRequiredPolicy(str(value).lower())
            elif key == "on_error":
                values[key] = ErrorPolicy(str(value).lower())
            elif key == "log_level":
                values[key] = str(value).upper()
            else:
                values[key] = _parse_flag(value)
        return Settings(**values)

    def transform_options(self) -> TransformOptions:
        return TransformOptions(
            missing_required=self.missing_required,
            on_error=self.on_error,
            strict=self.strict,
        )
