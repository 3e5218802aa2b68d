# wastewatch_root/config/settings.py
#
# Centralized Application Configuration
# This file defines the configuration for the wastewater surveillance analytics
# using Pydantic for validation and type safety. Values can be overridden from
# environment variables or a .env file (prefix WASTEWATCH_, nested with '__').

import logging
from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field, model_validator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Define Project Root ---
PROJECT_ROOT = Path(__file__).resolve().parent.parent

settings_logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# 1. NESTED CONFIGURATION MODELS
# -----------------------------------------------------------------------------

class AppConfig(BaseModel):
    """Core application metadata and operational settings."""
    name: str = "WasteWatch Surveillance Analytics"
    version: str = "1.0.0"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: str = "%(asctime)s - %(name)s.%(funcName)s - %(levelname)s - %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"
    # None means forecasts draw fresh entropy on every call.
    random_seed: Optional[int] = None

class DirectoryConfig(BaseModel):
    """Location of the flat-file data store, created if missing."""
    root: Path = PROJECT_ROOT
    data_sources: Path = root / "data_sources"

    @model_validator(mode='after')
    def create_directories(self) -> 'DirectoryConfig':
        self.data_sources.mkdir(parents=True, exist_ok=True)
        return self

class ThresholdConfig(BaseModel):
    """Cut points used to bucket a concentration level into a category."""
    level_medium_min: float = 20.0
    level_high_min: float = 50.0

class ForecastConfig(BaseModel):
    """Parameters of the blended trend / smoothed random-walk forecast."""
    horizon_days: int = 14
    history_window_days: int = 30
    min_history_points: int = 7
    trend_window: int = 7
    moving_average_window: int = 7
    trend_weight: float = 0.3
    time_series_weight: float = 0.7
    smoothing_decay_rate: float = 0.05
    jitter_amplitude: float = 0.5
    volatility_fallback: float = 5.0
    confidence_base: float = 0.9
    confidence_decay_rate: float = 0.1
    confidence_cap: float = 0.95
    default_reading_confidence: float = 0.5
    model_type: str = "multifactor"

    @model_validator(mode='after')
    def check_weights(self) -> 'ForecastConfig':
        """The blend must be a convex combination."""
        total = self.trend_weight + self.time_series_weight
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Forecast blend weights must sum to 1.0, got {total}.")
        return self

class AnomalyConfig(BaseModel):
    """Trailing-baseline anomaly detection parameters."""
    min_history_points: int = 14
    recent_window: int = 3
    std_multiplier: float = 2.0
    alert_severity: Literal["critical", "warning", "info"] = "critical"
    # 1 keeps the site x pathogen sweep sequential.
    sweep_max_workers: int = Field(default=1, ge=1)

class PriorityConfig(BaseModel):
    """Weights of the composite alert priority score."""
    danger_weight: float = 0.3
    concentration_weight: float = 0.25
    proximity_weight: float = 0.25
    trend_weight: float = 0.1
    population_weight: float = 0.1
    # Danger and trend terms are scaled after weighting; existing score
    # magnitudes depend on it.
    danger_scale: float = 10.0
    trend_scale: float = 10.0
    persist_top_n: int = 50
    stale_after_hours: int = 24
    top_alerts_default_limit: int = 10

class ThemeConfig(BaseModel):
    """Centralizes all color information for plots."""
    primary: str = "#0D47A1"
    background: str = "#FFFFFF"
    text: str = "#263238"

    risk_high: str = "#D32F2F"
    risk_moderate: str = "#FFA000"
    risk_low: str = "#388E3C"

    @computed_field
    @property
    def level_colors(self) -> Dict[str, str]:
        """Maps a level category to its display color."""
        return {"high": self.risk_high, "medium": self.risk_moderate, "low": self.risk_low}

# -----------------------------------------------------------------------------
# 2. MAIN SETTINGS CLASS
# -----------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Main settings class for the surveillance analytics.
    Aggregates all configuration models and loads from environment variables.
    """
    model_config = SettingsConfigDict(
        env_prefix='WASTEWATCH_',
        case_sensitive=False,
        env_nested_delimiter='__',
        env_file=f"{PROJECT_ROOT}/.env",
        extra='ignore'
    )

    app: AppConfig = Field(default_factory=AppConfig)
    directories: DirectoryConfig = Field(default_factory=DirectoryConfig)
    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    forecast: ForecastConfig = Field(default_factory=ForecastConfig)
    anomaly: AnomalyConfig = Field(default_factory=AnomalyConfig)
    priority: PriorityConfig = Field(default_factory=PriorityConfig)
    theme: ThemeConfig = Field(default_factory=ThemeConfig)

    # --- Data store file names (relative to directories.data_sources) ---
    sites_file: str = "sampling_sites.csv"
    pathogens_file: str = "pathogens.json"
    readings_file: str = "wastewater_readings.csv"
    population_file: str = "site_population_data.csv"
    predictions_file: str = "predictions.csv"
    alerts_file: str = "alerts.csv"
    priorities_file: str = "alert_priorities.csv"

# -----------------------------------------------------------------------------
# 3. SINGLETON INSTANCE
# -----------------------------------------------------------------------------

try:
    settings = Settings()
    settings_logger.info(
        f"Settings loaded for '{settings.app.name}' v{settings.app.version}. "
        f"LOG_LEVEL={settings.app.log_level}. PROJECT_ROOT='{PROJECT_ROOT}'"
    )
except Exception as e:
    settings_logger.critical(f"FATAL: Could not initialize application settings. Error: {e}", exc_info=True)
    raise
