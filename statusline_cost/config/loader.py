"""
Configuration management and loading.

Handles storage locations and tuning knobs for the cost subsystem.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Dict, Optional, Union

import yaml

DEFAULT_CONFIG_PATH = Path("~/.claude/statusline/cost.yaml")


@dataclass(frozen=True)
class PathsConfig:
    """Filesystem locations used by the cost subsystem."""
    cache_dir: Path
    ledger_path: Path
    projects_dir: Path

    @classmethod
    def defaults(cls, home: Optional[Path] = None) -> "PathsConfig":
        """Build the default locations under the user's home directory."""
        home = home if home is not None else Path.home()
        return cls(
            cache_dir=home / ".cache" / "claude-statusline",
            ledger_path=home / ".claude" / "statusline" / "costs" / "history.jsonl",
            projects_dir=home / ".claude" / "projects",
        )


@dataclass(frozen=True)
class CacheConfig:
    """Freshness and pruning thresholds for the disk cache."""
    transcript_ttl_seconds: float = 300
    prune_max_age_days: float = 30

    def __post_init__(self):
        """Validate thresholds are positive."""
        if self.transcript_ttl_seconds <= 0:
            raise ValueError("transcript_ttl_seconds must be > 0")
        if self.prune_max_age_days <= 0:
            raise ValueError("prune_max_age_days must be > 0")

    @property
    def transcript_ttl(self) -> timedelta:
        return timedelta(seconds=self.transcript_ttl_seconds)

    @property
    def prune_max_age(self) -> timedelta:
        return timedelta(days=self.prune_max_age_days)


@dataclass(frozen=True)
class LedgerConfig:
    """Retention and compaction throttle for the cost ledger."""
    retention_days: float = 31
    compaction_interval_minutes: float = 60

    def __post_init__(self):
        """Validate retention and throttle values."""
        if self.retention_days <= 0:
            raise ValueError("retention_days must be > 0")
        if self.compaction_interval_minutes < 0:
            raise ValueError("compaction_interval_minutes must be >= 0")

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.retention_days)

    @property
    def compaction_interval(self) -> timedelta:
        return timedelta(minutes=self.compaction_interval_minutes)


@dataclass(frozen=True)
class AppConfig:
    """Complete cost subsystem configuration."""
    paths: PathsConfig
    cache: CacheConfig = field(default_factory=CacheConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)


def default_config(home: Optional[Path] = None) -> AppConfig:
    """Return the configuration used when no file is present."""
    return AppConfig(paths=PathsConfig.defaults(home))


def load_config(path: Union[str, Path], home: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Every section and key is optional, but unknown keys are rejected so a
    typo never silently falls back to a default.

    Args:
        path: Path to YAML configuration file
        home: Home directory for default paths (defaults to the user's)

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path).expanduser()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'paths', 'cache', 'ledger'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    defaults = PathsConfig.defaults(home)
    paths_data = _section(raw_config, 'paths', {'cache_dir', 'ledger_path', 'projects_dir'})
    paths = PathsConfig(
        cache_dir=_path_value(paths_data, 'cache_dir', defaults.cache_dir),
        ledger_path=_path_value(paths_data, 'ledger_path', defaults.ledger_path),
        projects_dir=_path_value(paths_data, 'projects_dir', defaults.projects_dir),
    )

    cache_data = _section(raw_config, 'cache', {'transcript_ttl_seconds', 'prune_max_age_days'})
    cache = CacheConfig(**{
        key: _number_value(cache_data, key, f"cache.{key}") for key in cache_data
    })

    ledger_data = _section(raw_config, 'ledger', {'retention_days', 'compaction_interval_minutes'})
    ledger = LedgerConfig(**{
        key: _number_value(ledger_data, key, f"ledger.{key}") for key in ledger_data
    })

    return AppConfig(paths=paths, cache=cache, ledger=ledger)


def resolve_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """Load the configuration the CLI runs with.

    An explicit path must exist. Without one, the default location is used
    when present and the built-in defaults otherwise.
    """
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.expanduser().exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return default_config()


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict:
    """Return a validated config section, or an empty one if absent."""
    data = raw_config.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")
    return data


def _path_value(data: Dict, key: str, default: Path) -> Path:
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'paths.{key}' must be a non-empty string")
    return Path(value).expanduser()


def _number_value(data: Dict, key: str, path: str) -> float:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{path}' must be a number")
    return float(value)
