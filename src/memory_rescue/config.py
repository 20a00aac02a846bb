"""
Configuration

Loads and manages engine configuration from memory_rescue.yaml.
Configuration is read once at startup; hot reload is not supported.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from memory_rescue.models.memory_item import UrgencyTier

HOUR = 3600
DAY = 24 * HOUR


class DatabaseConfig(BaseModel):
    """Storage backend configuration."""
    backend: Literal["memory", "postgres"] = "memory"
    host: str = "localhost"
    port: int = 5432
    name: str = "memory_rescue"
    user: Optional[str] = None
    password: Optional[str] = None
    url: Optional[str] = None

    @property
    def connection_string(self) -> str:
        """Generate PostgreSQL connection string."""
        if self.url:
            return self.url
        if self.user and self.password:
            return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"
        return f"postgresql://{self.host}:{self.port}/{self.name}"


class DecayConfig(BaseModel):
    """Forgetting-curve parameters.

    strength(t) = max(floor, initial_strength * e^(-decay_rate * t)),
    with t measured in units of ``time_unit_seconds`` (hours by default).
    """
    default_decay_rate: float = Field(default=0.693, gt=0.0)
    strength_floor: float = Field(default=0.1, gt=0.0, lt=1.0)
    reinstatement_strength: float = Field(default=1.0, gt=0.0, le=1.0)
    time_unit_seconds: float = Field(default=HOUR, gt=0.0)


class InterventionThresholds(BaseModel):
    """Strength thresholds per intervention priority."""
    critical: float = 0.3
    high: float = 0.5
    medium: float = 0.7
    low: float = 0.9


class WatchdogConfig(BaseModel):
    """Decay watchdog configuration."""
    poll_interval_seconds: int = 15 * 60
    thresholds: InterventionThresholds = Field(default_factory=InterventionThresholds)
    # Weight of the newest session effectiveness in the decay-resistance EWMA
    resistance_learning_rate: float = Field(default=0.3, ge=0.0, le=1.0)


class PrimingConfig(BaseModel):
    """Selective priming engine configuration."""
    adaptive_mode: bool = True
    session_timeout_seconds: float = Field(default=30.0, gt=0.0)
    max_cues: int = 3
    response_time_normalizer: float = 5.0


class RescueCycleConfig(BaseModel):
    """One tier's fixed-interval rescue cycle."""
    interval_seconds: int
    max_batch_size: int = Field(..., gt=0)
    priority_threshold: float = Field(..., ge=0.0, le=1.0)
    strategy_preference: List[str] = Field(default_factory=list)
    effectiveness_target: float = 0.5


def default_cycles() -> Dict[UrgencyTier, RescueCycleConfig]:
    return {
        UrgencyTier.IMMINENT: RescueCycleConfig(
            interval_seconds=4 * HOUR,
            max_batch_size=20,
            priority_threshold=0.8,
            strategy_preference=["gentle-contextual"],
            effectiveness_target=0.70,
        ),
        UrgencyTier.DUE: RescueCycleConfig(
            interval_seconds=24 * HOUR,
            max_batch_size=35,
            priority_threshold=0.6,
            strategy_preference=["fragment-intensive"],
            effectiveness_target=0.59,
        ),
        UrgencyTier.OVERDUE: RescueCycleConfig(
            interval_seconds=3 * DAY,
            max_batch_size=50,
            priority_threshold=0.4,
            strategy_preference=["multimodal-reconstruction"],
            effectiveness_target=0.45,
        ),
        UrgencyTier.CRITICAL: RescueCycleConfig(
            interval_seconds=7 * DAY,
            max_batch_size=25,
            priority_threshold=0.2,
            strategy_preference=["comprehensive-recovery"],
            effectiveness_target=0.25,
        ),
    }


class SchedulerConfig(BaseModel):
    """Memory rescue scheduler configuration."""
    worker_pool_size: int = Field(default=4, gt=0)
    cycles: Dict[UrgencyTier, RescueCycleConfig] = Field(default_factory=default_cycles)

    @field_validator("cycles")
    @classmethod
    def _all_tiers_present(cls, cycles: Dict[UrgencyTier, RescueCycleConfig]):
        # Partial YAML overrides fall back to the defaults for omitted tiers
        defaults = default_cycles()
        for tier in UrgencyTier:
            cycles.setdefault(tier, defaults[tier])
        return cycles


class ResponderConfig(BaseModel):
    """User-response collaborator configuration."""
    kind: Literal["simulated", "llm"] = "simulated"
    seed: Optional[int] = None
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None


class MetricsConfig(BaseModel):
    """Reporting surface configuration."""
    enabled: bool = True
    log_dir: str = "logs"
    max_recent: int = 100


class LoggingConfig(BaseModel):
    """Process logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class RescueConfig(BaseModel):
    """Main configuration model."""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    decay: DecayConfig = Field(default_factory=DecayConfig)
    watchdog: WatchdogConfig = Field(default_factory=WatchdogConfig)
    priming: PrimingConfig = Field(default_factory=PrimingConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    responder: ResponderConfig = Field(default_factory=ResponderConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[Path] = None) -> RescueConfig:
    """
    Load configuration from YAML file.

    Falls back to environment variables and defaults.
    """
    env_path = Path.cwd() / "config" / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if config_path is None:
        config_path = Path.cwd() / "config" / "memory_rescue.yaml"

    config_data = {}

    if config_path.exists():
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

    # Override with environment variables
    if os.getenv("DATABASE_URL"):
        config_data.setdefault("database", {})
        config_data["database"]["url"] = os.getenv("DATABASE_URL")
        config_data["database"]["backend"] = "postgres"

    if os.getenv("OPENAI_API_KEY"):
        config_data.setdefault("responder", {})
        config_data["responder"]["api_key"] = os.getenv("OPENAI_API_KEY")

    if os.getenv("MEMORY_RESCUE_LOG_LEVEL"):
        config_data.setdefault("logging", {})
        config_data["logging"]["level"] = os.getenv("MEMORY_RESCUE_LOG_LEVEL")

    return RescueConfig(**config_data)


def configure_logging(config: LoggingConfig) -> None:
    """Configure the memory_rescue logger hierarchy once at process start."""
    logger = logging.getLogger("memory_rescue")
    logger.setLevel(config.level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(config.format))
        logger.addHandler(handler)
