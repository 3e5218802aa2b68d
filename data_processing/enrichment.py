# wastewatch_root/data_processing/enrichment.py
#
# Derived columns for wastewater readings.

import logging

import numpy as np
import pandas as pd

try:
    from config.settings import settings
    from .pipeline import DataPipeline
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in enrichment.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)

LEVEL_CATEGORIES = ("low", "medium", "high")
TREND_LABELS = ("increasing", "decreasing", "stable")


def categorize_level(level: float) -> str:
    """Buckets a concentration level: <20 low, <50 medium, otherwise high."""
    if level < settings.thresholds.level_medium_min:
        return "low"
    if level < settings.thresholds.level_high_min:
        return "medium"
    return "high"


def categorize_levels(levels: pd.Series) -> pd.Series:
    """Vectorized categorize_level. NaN levels map to NaN."""
    values = pd.to_numeric(levels, errors='coerce')
    conditions = [
        values < settings.thresholds.level_medium_min,
        values < settings.thresholds.level_high_min,
        values >= settings.thresholds.level_high_min,
    ]
    categories = np.select(conditions, list(LEVEL_CATEGORIES), default="")
    return pd.Series(categories, index=levels.index).replace("", np.nan)


def enrich_readings_with_features(df_readings: pd.DataFrame) -> pd.DataFrame:
    """
    Prepares raw readings for the analytics core.

    Coerces concentration and confidence to floats, normalizes the level
    category and trend labels, derives a missing level category from the
    concentration, and defaults a missing trend to 'stable'.
    """
    if not isinstance(df_readings, pd.DataFrame) or df_readings.empty:
        return pd.DataFrame()

    df = (
        DataPipeline(df_readings)
        .convert_numeric_columns(['concentration_level', 'confidence_score'])
        .convert_date_columns(['sample_date'])
        .get_df()
    )

    for col in ('level_category', 'trend'):
        if col in df.columns:
            df[col] = df[col].astype("string").str.strip().str.lower().replace("", pd.NA)
        else:
            df[col] = pd.Series(pd.NA, index=df.index, dtype="string")

    if 'concentration_level' in df.columns:
        derived = categorize_levels(df['concentration_level'])
        missing_category = df['level_category'].isna()
        df.loc[missing_category, 'level_category'] = derived[missing_category]
        if missing_category.any():
            logger.debug(f"Derived level category for {int(missing_category.sum())} readings.")

    df['trend'] = df['trend'].fillna("stable")
    return df
