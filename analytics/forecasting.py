# wastewatch_root/analytics/forecasting.py
#
# Pathogen Concentration Forecasting Engine
# Produces a 14-day forecast for one (site, pathogen) pair by blending a
# short-window linear trend with a smoothed, decaying random walk, and flags
# recent readings that spike above a trailing baseline.
#
# The random-walk term injects uniform jitter on purpose: identical inputs do
# not give identical forecasts unless a seeded generator is supplied.

import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd

try:
    from config.settings import settings
    from data_processing.enrichment import categorize_level
    from data_processing.store import DataStore, PREDICTION_COLUMNS
    from .timeseries import decayed_confidence, moving_average, volatility
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in forecasting.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
RngFactory = Callable[[], Any]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_rng_factory() -> np.random.Generator:
    """A fresh generator per forecast; seeded only when the app config pins a seed."""
    return np.random.default_rng(settings.app.random_seed)


def _concentration_levels(history: pd.DataFrame) -> np.ndarray:
    """Concentration column as floats, with missing values counted as 0."""
    if 'concentration_level' not in history.columns:
        return np.zeros(len(history), dtype=float)
    levels = pd.to_numeric(history['concentration_level'], errors='coerce').fillna(0.0)
    return levels.to_numpy(dtype=float)


def _mean_reading_confidence(history: pd.DataFrame) -> float:
    """Mean per-reading confidence; missing or zero scores count as the default."""
    default = settings.forecast.default_reading_confidence
    if 'confidence_score' not in history.columns:
        return default
    scores = pd.to_numeric(history['confidence_score'], errors='coerce')
    scores = scores.where(scores.notna() & (scores != 0), default)
    return float(scores.mean())


def _trend_model(levels: np.ndarray) -> Callable[[int], float]:
    """
    Linear extrapolation from the most recent window.

    The window is split at its floor midpoint; the per-step trend is the
    difference of the half means divided by the length of the first half.
    """
    recent = levels[-settings.forecast.trend_window:]
    recent_mean = float(recent.mean())

    trend = 0.0
    if len(recent) >= 2:
        midpoint = len(recent) // 2
        first_half, second_half = recent[:midpoint], recent[midpoint:]
        trend = (second_half.mean() - first_half.mean()) / len(first_half)

    def predict_level(days_ahead: int) -> float:
        return max(0.0, recent_mean + trend * days_ahead)

    return predict_level


def _smoothed_model(levels: np.ndarray, rng: Any) -> Callable[[int], float]:
    """Moving-average anchor decayed over the horizon, plus volatility-scaled jitter."""
    cfg = settings.forecast
    anchor = float(moving_average(levels, cfg.moving_average_window).iloc[-1])
    spread = volatility(levels)

    def predict_level(days_ahead: int) -> float:
        decay = math.exp(-cfg.smoothing_decay_rate * days_ahead)
        jitter = rng.uniform(-cfg.jitter_amplitude, cfg.jitter_amplitude) * spread * math.sqrt(days_ahead)
        return max(0.0, anchor * decay + jitter)

    return predict_level


def generate_predictions(
    history: pd.DataFrame,
    site_id: str,
    pathogen_id: str,
    as_of: date,
    rng: Optional[Any] = None,
) -> pd.DataFrame:
    """
    Forecasts concentration levels for the next 14 days.

    Args:
        history: Readings for the pair, oldest first (normally the trailing 30 days).
        site_id: Sampling site the forecast belongs to.
        pathogen_id: Pathogen the forecast belongs to.
        as_of: Generation date; targets run from as_of + 1 through as_of + 14.
        rng: Anything with ``uniform(low, high)``. Defaults to a fresh numpy generator.

    Returns:
        One row per horizon day, or an empty DataFrame when fewer than seven
        readings are available.
    """
    cfg = settings.forecast
    if history is None or len(history) < cfg.min_history_points:
        n_points = 0 if history is None else len(history)
        logger.debug(
            f"Insufficient history for forecast of {site_id}/{pathogen_id} "
            f"({n_points} readings, {cfg.min_history_points} required)."
        )
        return pd.DataFrame(columns=PREDICTION_COLUMNS)

    rng = rng if rng is not None else default_rng_factory()
    levels = _concentration_levels(history)
    trend_level = _trend_model(levels)
    smoothed_level = _smoothed_model(levels, rng)
    data_quality = _mean_reading_confidence(history)

    factors_used: Dict[str, Any] = {
        'trend_weight': cfg.trend_weight,
        'ml_weight': cfg.time_series_weight,
        'historical_days': len(history),
    }

    records: List[Dict[str, Any]] = []
    for days_ahead in range(1, cfg.horizon_days + 1):
        predicted_level = (
            cfg.trend_weight * trend_level(days_ahead)
            + cfg.time_series_weight * smoothed_level(days_ahead)
        )
        records.append({
            'site_id': site_id,
            'pathogen_id': pathogen_id,
            'prediction_date': as_of + timedelta(days=days_ahead),
            'predicted_level': predicted_level,
            'predicted_category': categorize_level(predicted_level),
            'confidence_score': decayed_confidence(data_quality, days_ahead),
            'model_type': cfg.model_type,
            'factors_used': dict(factors_used),
        })

    return pd.DataFrame(records, columns=PREDICTION_COLUMNS)


def detect_anomalies(history: pd.DataFrame) -> bool:
    """
    True when the mean of the last three readings exceeds the mean of the
    eleven readings before them by more than two population standard
    deviations. Needs at least fourteen readings; otherwise False.
    """
    cfg = settings.anomaly
    if history is None or len(history) < cfg.min_history_points:
        return False

    levels = _concentration_levels(history)[-cfg.min_history_points:]
    recent = levels[-cfg.recent_window:]
    baseline = levels[:-cfg.recent_window]

    recent_avg = float(recent.mean())
    baseline_avg = float(baseline.mean())
    baseline_std = volatility(baseline)

    return recent_avg > baseline_avg + cfg.std_multiplier * baseline_std


class ForecastEngine:
    """
    Runs forecasts and anomaly checks for pairs stored in a DataStore.

    The engine holds only injected collaborators. Each call fetches its own
    history and draws its own generator, so concurrent calls are independent.
    """
    def __init__(
        self,
        store: DataStore,
        clock: Optional[Clock] = None,
        rng_factory: Optional[RngFactory] = None,
    ):
        self.store = store
        self.clock = clock or utc_now
        self.rng_factory = rng_factory or default_rng_factory

    def fetch_history(self, site_id: str, pathogen_id: str) -> pd.DataFrame:
        """Trailing-window readings for one pair, oldest first. Empty on read failure."""
        since = self.clock().date() - timedelta(days=settings.forecast.history_window_days)
        try:
            return self.store.fetch_readings(
                site_id=site_id, pathogen_id=pathogen_id, since=since, ascending=True
            )
        except Exception as e:
            logger.error(f"Error fetching history for {site_id}/{pathogen_id}: {e}", exc_info=True)
            return pd.DataFrame()

    def generate_predictions(self, site_id: str, pathogen_id: str) -> pd.DataFrame:
        history = self.fetch_history(site_id, pathogen_id)
        return generate_predictions(
            history, site_id, pathogen_id, as_of=self.clock().date(), rng=self.rng_factory()
        )

    def detect_anomalies(self, site_id: str, pathogen_id: str) -> bool:
        return detect_anomalies(self.fetch_history(site_id, pathogen_id))

    def save_predictions(self, predictions: pd.DataFrame) -> bool:
        """Best-effort persistence. Returns False (after logging) on failure."""
        if predictions is None or predictions.empty:
            return True
        try:
            self.store.insert_predictions(predictions)
        except Exception as e:
            logger.error(f"Error saving {len(predictions)} predictions: {e}", exc_info=True)
            return False
        logger.info(f"Saved {len(predictions)} predictions.")
        return True
