"""Centralized configuration for ddreduce.

This module provides utilities for loading configuration from a JSON file
(``ddreduce.json`` by default) with environment variable fallbacks, and the
immutable ``ReduceConfig`` value threaded through a reduction run.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_CONFIG_PATH = "ddreduce.json"
ENV_PREFIX = "DDREDUCE"

DEFAULT_PASSES = ("definitions", "sub-elements", "unused-definitions")


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from JSON file.

    Returns empty dict if file doesn't exist or is invalid.

    Args:
        config_path: Path to the JSON config file (default: "ddreduce.json")

    Returns:
        Configuration dictionary, or empty dict if file not found/invalid
    """
    path = Path(config_path)

    if not path.exists():
        return {}

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError):
        # Fall back to defaults on a broken file
        return {}
    return data if isinstance(data, dict) else {}


def get_config_value(
    keys: List[str], default: Any = None, config: Optional[Dict[str, Any]] = None
) -> Any:
    """Get nested configuration value with fallback to environment variable.

    Supports nested keys like ["oracle", "timeout_seconds"]. Falls back to the
    environment variable built from the prefixed, upper-cased keys
    (e.g. DDREDUCE_ORACLE_TIMEOUT_SECONDS), then to ``default``.

    Args:
        keys: List of keys to traverse (e.g., ["oracle", "timeout_seconds"])
        default: Default value if key not found
        config: Optional config dict (uses load_config() if not provided)

    Returns:
        Configuration value, or default if not found
    """
    if config is None:
        config = load_config()

    value: Any = config
    for key in keys:
        if isinstance(value, dict):
            value = value.get(key)
            if value is None:
                break
        else:
            value = None
            break

    if value is not None:
        return value

    env_key = "_".join([ENV_PREFIX] + [k.upper().replace("-", "_") for k in keys])
    env_value = os.environ.get(env_key)
    if env_value is not None:
        return env_value

    return default


@dataclass(frozen=True)
class ReduceConfig:
    """Immutable settings for one reduction run.

    Attributes:
        test: Interestingness test executable
        test_args: Extra arguments; a literal "{}" is replaced by the candidate
                   path, otherwise the path is appended
        timeout_seconds: Per-trial oracle timeout
        jobs: Maximum concurrent trials per partition
        max_trials: Session-wide trial budget (None for unlimited)
        max_seconds: Session-wide wall-clock budget (None for unlimited)
        max_rounds: Upper bound on rounds (None for run-to-fixpoint)
        chunk_policy: "reset" or "keep" (see ddreduce.core.delta.bisector.ChunkPolicy)
        passes: Pass names in the order they run each round
        work_dir: Directory for candidate files
                  (None: a fresh temporary directory)
        keep_temps: Keep candidate files after each trial
        output: Output path (None: derived from the input name)
        in_place: Overwrite the input file with the result
        format: Codec name, or "auto" to pick by file extension
    """
    test: str
    test_args: Tuple[str, ...] = ()
    timeout_seconds: float = 30.0
    jobs: int = 1
    max_trials: Optional[int] = None
    max_seconds: Optional[float] = None
    max_rounds: Optional[int] = None
    chunk_policy: str = "reset"
    passes: Tuple[str, ...] = field(default=DEFAULT_PASSES)
    work_dir: Optional[str] = None
    keep_temps: bool = False
    output: Optional[str] = None
    in_place: bool = False
    format: str = "auto"

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.jobs < 1:
            raise ValueError("jobs must be at least 1")
        if self.max_trials is not None and self.max_trials < 0:
            raise ValueError("max_trials must not be negative")

    @property
    def command(self) -> List[str]:
        return [self.test, *self.test_args]


def _optional(value: Any, cast: Any) -> Any:
    return None if value is None else cast(value)


def build_config(
    test: str,
    test_args: Optional[List[str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    config: Optional[Dict[str, Any]] = None,
) -> ReduceConfig:
    """Build a ReduceConfig from CLI overrides, the config file and defaults.

    Priority: explicit overrides > config file / environment > built-in defaults.

    Args:
        test: Interestingness test executable
        test_args: Extra test arguments
        overrides: Values given on the command line (None entries are ignored)
        config: Loaded config dict (uses load_config() if not provided)

    Returns:
        Frozen ReduceConfig
    """
    if config is None:
        config = load_config()
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    def pick(name: str, keys: List[str], default: Any) -> Any:
        if name in overrides:
            return overrides[name]
        return get_config_value(keys, default=default, config=config)

    passes = pick("passes", ["session", "passes"], list(DEFAULT_PASSES))
    if isinstance(passes, str):
        passes = [p.strip() for p in passes.split(",") if p.strip()]

    return ReduceConfig(
        test=test,
        test_args=tuple(test_args or ()),
        timeout_seconds=float(pick("timeout_seconds", ["oracle", "timeout_seconds"], 30.0)),
        jobs=int(pick("jobs", ["oracle", "jobs"], 1)),
        max_trials=_optional(pick("max_trials", ["session", "max_trials"], None), int),
        max_seconds=_optional(pick("max_seconds", ["session", "max_seconds"], None), float),
        max_rounds=_optional(pick("max_rounds", ["session", "max_rounds"], None), int),
        chunk_policy=str(pick("chunk_policy", ["session", "chunk_policy"], "reset")),
        passes=tuple(passes),
        work_dir=pick("work_dir", ["oracle", "work_dir"], None),
        keep_temps=bool(overrides.get("keep_temps", False)),
        output=overrides.get("output"),
        in_place=bool(overrides.get("in_place", False)),
        format=str(pick("format", ["input", "format"], "auto")),
    )
