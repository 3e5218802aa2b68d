# wastewatch_root/analytics/timeseries.py
#
# Time-Series Statistics
# Small statistical building blocks shared by the forecast and anomaly models.

import logging
import math
from typing import Sequence, Union

import numpy as np
import pandas as pd

try:
    from config.settings import settings
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in timeseries.py: Settings could not be imported. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)

SeriesLike = Union[pd.Series, np.ndarray, Sequence[float]]


def moving_average(series: SeriesLike, window: int) -> pd.Series:
    """
    Trailing moving average with a window that shrinks near the start.

    Element i is the mean of series[max(0, i - window + 1) .. i], so the first
    element equals itself. The result has the same length (and, for a Series
    input, the same index) as the input.
    """
    if window < 1:
        raise ValueError(f"Moving average window must be at least 1, got {window}.")
    values = series if isinstance(series, pd.Series) else pd.Series(series, dtype=float)
    return values.astype(float).rolling(window=window, min_periods=1).mean()


def volatility(series: SeriesLike) -> float:
    """
    Population standard deviation of the series.

    Fewer than two points carry no spread information, so the configured
    fallback (5.0) is returned instead.
    """
    values = np.asarray(series, dtype=float)
    if values.size < 2:
        return settings.forecast.volatility_fallback
    return float(np.std(values, ddof=0))


def decayed_confidence(mean_confidence: float, days_ahead: int) -> float:
    """Forecast confidence for a horizon: base x data quality x exp(-rate x days), capped."""
    cfg = settings.forecast
    confidence = cfg.confidence_base * mean_confidence * math.exp(-cfg.confidence_decay_rate * days_ahead)
    return min(cfg.confidence_cap, confidence)
