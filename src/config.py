"""
Runtime configuration loaded from YAML.

Every key is optional; missing sections fall back to the defaults below.

Example::

    timing:
      poll_interval_s: 0.5
      poll_attempts: 24
      settle_delay_s: 3.0
      inter_item_delay_s: 4.0
    enrichment:
      enabled: true
      timeout_s: 12.0
      stop_on_error: false
    extraction:
      phone_policy: local10   # or keep_all
    storage:
      db_path: ./mbx.sqlite
    browser:
      headless: true
      timeout_ms: 30000
    ops:
      log_path: ./ops.log
      stdout: false
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from src.errors import ConfigurationError
from src.schemas import PhonePolicy


@dataclass
class TimingConfig:
    poll_interval_s: float = 0.5
    poll_attempts: int = 24
    settle_delay_s: float = 3.0
    inter_item_delay_s: float = 4.0


@dataclass
class EnrichmentConfig:
    enabled: bool = True
    timeout_s: float = 12.0
    stop_on_error: bool = False


@dataclass
class ExtractionConfig:
    phone_policy: PhonePolicy = PhonePolicy.LOCAL10


@dataclass
class StorageConfig:
    db_path: str = "mbx.sqlite"


@dataclass
class BrowserConfig:
    headless: bool = True
    timeout_ms: int = 30000
    scroll_wait_ms: int = 1500
    locale: str = "en-US"


@dataclass
class OpsConfig:
    log_path: Optional[str] = None
    stdout: bool = False


@dataclass
class Settings:
    timing: TimingConfig = field(default_factory=TimingConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    ops: OpsConfig = field(default_factory=OpsConfig)


_SECTIONS = {
    "timing": TimingConfig,
    "enrichment": EnrichmentConfig,
    "extraction": ExtractionConfig,
    "storage": StorageConfig,
    "browser": BrowserConfig,
    "ops": OpsConfig,
}


def _coerce(section: str, key: str, default: Any, value: Any) -> Any:
    if isinstance(default, PhonePolicy):
        try:
            return PhonePolicy(str(value))
        except ValueError:
            allowed = ", ".join(p.value for p in PhonePolicy)
            raise ConfigurationError(f"{section}.{key} must be one of: {allowed}")
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigurationError(f"{section}.{key} must be true or false")
        return value
    if isinstance(default, int) and not isinstance(default, bool):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigurationError(f"{section}.{key} must be a non-negative integer")
        return value
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ConfigurationError(f"{section}.{key} must be a non-negative number")
        return float(value)
    if value is None:
        return None
    return str(value)


def settings_from_dict(cfg: Dict[str, Any] | None) -> Settings:
    """Build Settings from a parsed YAML mapping, validating types."""
    cfg = cfg or {}
    if not isinstance(cfg, dict):
        raise ConfigurationError("top-level config must be a mapping")
    settings = Settings()
    for section, cls in _SECTIONS.items():
        raw = cfg.get(section)
        if raw is None:
            continue
        if not isinstance(raw, dict):
            raise ConfigurationError(f"section '{section}' must be a mapping")
        target = getattr(settings, section)
        known = {f.name for f in fields(cls)}
        for key, value in raw.items():
            if key not in known:
                raise ConfigurationError(f"unknown key '{section}.{key}'")
            setattr(target, key, _coerce(section, key, getattr(target, key), value))
    if settings.timing.poll_attempts < 1:
        raise ConfigurationError("timing.poll_attempts must be at least 1")
    return settings


def load_settings(config_path: Optional[Path]) -> Settings:
    """Load settings from ``config_path``; None means defaults."""
    if config_path is None:
        return Settings()
    config_path = Path(config_path)
    if not config_path.exists() or not config_path.is_file():
        raise ConfigurationError(f"file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {config_path}: {e}") from e
    return settings_from_dict(cfg)
