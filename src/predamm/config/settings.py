"""TOML config loading and profiles."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir() -> Path:
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    config_dir = config_dir or _find_config_dir()
    default_path = config_dir / "default.toml"
    base = _load_toml(default_path) if default_path.exists() else {}
    if profile:
        profile_path = config_dir / f"{profile}.toml"
        if profile_path.exists():
            base = _deep_merge(base, _load_toml(profile_path))
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    return Settings.from_dict(load_config(profile, config_dir))


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        storage: dict[str, Any] | None = None,
        engine: dict[str, Any] | None = None,
        settlement: dict[str, Any] | None = None,
        markets: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.storage = storage or {}
        self.engine = engine or {}
        self.settlement = settlement or {}
        self.markets = markets or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            storage=raw.get("storage"),
            engine=raw.get("engine"),
            settlement=raw.get("settlement"),
            markets=raw.get("markets"),
            logging=raw.get("logging"),
        )

    # Convenience accessors with defaults
    @property
    def db_path(self) -> str:
        return self.storage.get("db_path", "data/predamm.duckdb")

    @property
    def storage_backend(self) -> str:
        return self.storage.get("backend", "duckdb")

    @property
    def solver_tolerance(self) -> float:
        return float(self.engine.get("solver_tolerance", 1e-4))

    @property
    def solver_max_iterations(self) -> int:
        return int(self.engine.get("solver_max_iterations", 100))

    @property
    def trade_cost_tolerance(self) -> float:
        return float(self.engine.get("trade_cost_tolerance", 1e-6))

    @property
    def price_sum_tolerance(self) -> float:
        return float(self.engine.get("price_sum_tolerance", 1e-9))

    @property
    def max_trade_attempts(self) -> int:
        return max(1, int(self.engine.get("max_trade_attempts", 3)))

    @property
    def lock_timeout_sec(self) -> float:
        return float(self.engine.get("lock_timeout_sec", 5.0))

    @property
    def settlement_require_lock(self) -> bool:
        return bool(self.settlement.get("require_lock", True))

    def market_defaults(self, market_type: str) -> dict[str, Any]:
        """Per-type overrides from ``[markets.<type>]``."""
        return dict(self.markets.get(market_type) or {})

    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at application entry."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
