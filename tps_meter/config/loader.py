"""
Configuration management and loading.

Handles notification options supplied once at setup.
"""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

MAX_PRECISION = 20

# Host option names -> field names
CAMEL_CASE_KEYS = {
    "minOutputTokensToNotify": "min_output_tokens_to_notify",
    "minSecondsToNotify": "min_seconds_to_notify",
    "precision": "precision",
    "showCache": "show_cache",
    "showTotals": "show_totals",
}


@dataclass(frozen=True)
class NotificationOptions:
    """Options controlling when and how the run summary is shown."""
    min_output_tokens_to_notify: float = 1
    min_seconds_to_notify: float = 0
    precision: int = 1  # decimals for TPS and seconds
    show_cache: bool = True
    show_totals: bool = True

    def __post_init__(self):
        """Validate option values."""
        for name in ("min_output_tokens_to_notify", "min_seconds_to_notify"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number")
            if value < 0:
                raise ValueError(f"{name} must be >= 0")
        if isinstance(self.precision, bool) or not isinstance(self.precision, int):
            raise ValueError("precision must be an integer")
        if not 0 <= self.precision <= MAX_PRECISION:
            raise ValueError(f"precision must be between 0 and {MAX_PRECISION}")
        for name in ("show_cache", "show_totals"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be a boolean")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_OPTIONS = NotificationOptions()


def options_from_mapping(
    data: Optional[Mapping[str, Any]],
    path: str = "options",
) -> NotificationOptions:
    """Merge a partial option mapping over the defaults.

    Keys may use either the snake_case field names or the host's camelCase
    names. Unknown keys are rejected rather than ignored.

    Args:
        data: Partial options, or None for all defaults
        path: Label used in error messages

    Returns:
        Validated NotificationOptions

    Raises:
        ValueError: If a key is unknown or a value is invalid
    """
    if data is None:
        return DEFAULT_OPTIONS
    if not isinstance(data, Mapping):
        raise ValueError(f"'{path}' must be a dictionary")
    if not data:
        return DEFAULT_OPTIONS

    field_names = {f.name for f in fields(NotificationOptions)}
    overrides: Dict[str, Any] = {}
    unknown_keys = set()
    for key, value in data.items():
        name = CAMEL_CASE_KEYS.get(key, key)
        if name not in field_names:
            unknown_keys.add(key)
            continue
        if name in overrides:
            raise ValueError(f"Duplicate option '{name}' in {path}")
        overrides[name] = value

    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    return NotificationOptions(**{**DEFAULT_OPTIONS.to_dict(), **overrides})


def load_notification_options(path: str) -> NotificationOptions:
    """Load and validate notification options from a YAML file.

    An empty file means "use the defaults".

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated NotificationOptions object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Options file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in options file {path}: {e}")

    if raw_config is None:
        return DEFAULT_OPTIONS
    if not isinstance(raw_config, dict):
        raise ValueError("Options file must contain a mapping")

    return options_from_mapping(raw_config, path=str(path))
