"""Engine configuration loaded from engine.yaml.

Supports:
- The list of instrument ids to analyse
- The (label, interval, weight) timeframes
- Optional verdict thresholds and indicator periods
- Backward compatible: no YAML file = default assets and 15m/1h/1d
"""

import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, model_validator

from core.models.config import (
    DEFAULT_ASSET_IDS,
    DEFAULT_TIMEFRAMES,
    IndicatorConfig,
    ScoringConfig,
    TimeframeConfig,
)

logger = logging.getLogger(__name__)


class EngineConfig(BaseModel):
    """Top-level engine.yaml configuration."""

    assets: list[int] = list(DEFAULT_ASSET_IDS)
    timeframes: list[TimeframeConfig] = list(DEFAULT_TIMEFRAMES)
    scoring: ScoringConfig = ScoringConfig()
    indicators: IndicatorConfig = IndicatorConfig()

    @model_validator(mode="after")
    def _validate(self):
        if not self.assets:
            raise ValueError("assets must contain at least one instrument id")
        if not self.timeframes:
            raise ValueError("timeframes must contain at least one entry")
        labels = [tf.label for tf in self.timeframes]
        if len(set(labels)) != len(labels):
            raise ValueError(f"timeframe labels must be unique, got {labels}")
        if len(set(self.assets)) != len(self.assets):
            raise ValueError(f"assets must be unique, got {self.assets}")
        return self

    @property
    def total_weight(self) -> int:
        return sum(tf.weight for tf in self.timeframes)


def load_engine_config(path: Path) -> EngineConfig:
    """Load engine config from YAML file.

    Falls back to defaults if the file doesn't exist.
    """
    load_dotenv(path.parent / ".env", override=False)

    if not path.exists():
        logger.info("No engine config found at %s, using defaults", path)
        return EngineConfig()

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    config = EngineConfig(**raw)
    logger.info(
        "Loaded engine config: %d assets, timeframes=%s",
        len(config.assets),
        ",".join(f"{tf.label}x{tf.weight}" for tf in config.timeframes),
    )
    return config
