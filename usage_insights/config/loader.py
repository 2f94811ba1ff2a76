"""
Configuration management and loading.

Handles report limits and thresholds read from YAML.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml


@dataclass(frozen=True)
class ReportConfig:
    """Limits and thresholds applied while building reports."""
    top_articles_limit: int = 10
    top_users_limit: int = 10
    most_repeated_limit: int = 5
    recent_sessions_limit: int = 10
    response_window_ms: int = 300_000  # Deltas at or above this are not live replies

    def __post_init__(self):
        """Validate all limits are positive."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{f.name} must be an integer")
            if value <= 0:
                raise ValueError(f"{f.name} must be > 0")


def load_report_config(path: Optional[str] = None) -> ReportConfig:
    """Load and validate report configuration from a YAML file.

    Every key is optional; omitted keys keep their defaults. Unknown keys
    are rejected so that a typo never silently falls back to a default.

    Args:
        path: Path to YAML configuration file, or None for defaults

    Returns:
        Validated ReportConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return ReportConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Report config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return ReportConfig()

    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_keys = {f.name for f in fields(ReportConfig)}
    unknown_keys = set(raw_config.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return ReportConfig(**raw_config)
