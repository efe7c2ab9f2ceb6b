"""
Configuration management for the Gambit engine.
Supports config.json with .env and environment variable overrides.
All paths are resolved relative to the project root.
"""

import json
import os
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

load_dotenv()

# Project root directory (parent of 'gambit' folder)
PROJECT_ROOT = Path(__file__).parent.parent

IN_MEMORY_DATABASE = ":memory:"


def get_env(key: str, default: str = None) -> Optional[str]:
    """Get environment variable with optional default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes", "on")


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        return default


# ==================== Configuration Models ====================

class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = True
    name: str = "Degen Gambit"


class SecurityConfig(BaseModel):
    secret_key: str = "CHANGE_THIS_IN_PRODUCTION_PLEASE"
    admin_token: str = "CHANGE_THIS_IN_PRODUCTION_PLEASE"
    session_days: int = 30


class MachineConfig(BaseModel):
    """Pricing and timing of the slot machine. Amounts are integer base units."""
    blocks_to_act: int = 20
    cost_to_spin: int = 100_000
    cost_to_respin: int = 70_000

    @model_validator(mode="after")
    def check_pricing(self):
        if self.blocks_to_act < 1:
            raise ValueError("blocks_to_act must be at least 1")
        if self.cost_to_spin < 0 or self.cost_to_respin < 0:
            raise ValueError("spin prices must not be negative")
        if self.cost_to_respin > self.cost_to_spin:
            raise ValueError("cost_to_respin must not exceed cost_to_spin")
        return self


class PayoutConfig(BaseModel):
    """Payout multipliers, in multiples of cost_to_spin."""
    minor_triple: int = 50
    minor_outer_pair: int = 10
    major_outer_pair: int = 20
    major_distinct: int = 100


class StreakConfig(BaseModel):
    enabled: bool = True
    timezone: str = "UTC"
    daily_streak_reward: int = 1
    weekly_streak_reward: int = 5


class ChainConfig(BaseModel):
    produce_blocks: bool = True
    block_interval_seconds: float = 2.0


class RateLimitConfig(BaseModel):
    enabled: bool = True
    game_requests: str = "30/minute"  # spin / accept
    api_requests: str = "60/minute"   # read-only endpoints


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_to_file: bool = False
    formatter: str = "color"


class PathsConfig(BaseModel):
    """All paths are relative to PROJECT_ROOT."""
    config_file: str = "config.json"
    database: str = "data/gambit.db"
    log_file: str = "data/app.log"

    def get_config_path(self) -> Path:
        return PROJECT_ROOT / self.config_file

    def get_db_path(self) -> Union[Path, str]:
        if self.database == IN_MEMORY_DATABASE:
            return IN_MEMORY_DATABASE
        return PROJECT_ROOT / self.database

    def get_log_path(self) -> Path:
        return PROJECT_ROOT / self.log_file


class AppConfig(BaseModel):
    """Main application configuration."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    machine: MachineConfig = Field(default_factory=MachineConfig)
    payouts: PayoutConfig = Field(default_factory=PayoutConfig)
    streaks: StreakConfig = Field(default_factory=StreakConfig)
    chain: ChainConfig = Field(default_factory=ChainConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)


# ==================== Configuration Loading ====================

def _apply_env_overrides(data: dict) -> dict:
    if get_env("SERVER_HOST"):
        data.setdefault("server", {})["host"] = get_env("SERVER_HOST")
    if get_env("SERVER_PORT"):
        data.setdefault("server", {})["port"] = get_env_int("SERVER_PORT", 8000)
    if get_env("DEBUG"):
        data.setdefault("server", {})["debug"] = get_env_bool("DEBUG")

    if get_env("SECRET_KEY"):
        data.setdefault("security", {})["secret_key"] = get_env("SECRET_KEY")
    if get_env("ADMIN_TOKEN"):
        data.setdefault("security", {})["admin_token"] = get_env("ADMIN_TOKEN")

    if get_env("BLOCKS_TO_ACT"):
        data.setdefault("machine", {})["blocks_to_act"] = get_env_int("BLOCKS_TO_ACT", 20)
    if get_env("COST_TO_SPIN"):
        data.setdefault("machine", {})["cost_to_spin"] = get_env_int("COST_TO_SPIN")
    if get_env("COST_TO_RESPIN"):
        data.setdefault("machine", {})["cost_to_respin"] = get_env_int("COST_TO_RESPIN")

    if get_env("PRODUCE_BLOCKS"):
        data.setdefault("chain", {})["produce_blocks"] = get_env_bool("PRODUCE_BLOCKS", True)
    if get_env("BLOCK_INTERVAL_SECONDS"):
        data.setdefault("chain", {})["block_interval_seconds"] = get_env_float(
            "BLOCK_INTERVAL_SECONDS", 2.0
        )

    if get_env("DB_PATH"):
        data.setdefault("paths", {})["database"] = get_env("DB_PATH")

    if get_env("LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = get_env("LOG_LEVEL")
    if get_env("LOG_TO_FILE"):
        data.setdefault("logging", {})["log_to_file"] = get_env_bool("LOG_TO_FILE")
    if get_env("LOG_FORMATTER"):
        data.setdefault("logging", {})["formatter"] = get_env("LOG_FORMATTER")

    if get_env("RATE_LIMIT_ENABLED"):
        data.setdefault("rate_limit", {})["enabled"] = get_env_bool("RATE_LIMIT_ENABLED", True)
    if get_env("RATE_LIMIT_GAME_REQUESTS"):
        data.setdefault("rate_limit", {})["game_requests"] = get_env("RATE_LIMIT_GAME_REQUESTS")
    if get_env("RATE_LIMIT_API_REQUESTS"):
        data.setdefault("rate_limit", {})["api_requests"] = get_env("RATE_LIMIT_API_REQUESTS")

    return data


def load_config(config_path: Path = None) -> AppConfig:
    """
    Load configuration from config.json with environment variable overrides.
    Environment variables take precedence over config.json values.
    """
    config_path = config_path or PathsConfig().get_config_path()

    data = {}
    if config_path.exists():
        with open(config_path, "r") as f:
            data = json.load(f)

    return AppConfig(**_apply_env_overrides(data))


# Global config instance
settings = load_config()
