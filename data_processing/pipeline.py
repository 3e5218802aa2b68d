# wastewatch_root/data_processing/pipeline.py
#
# Fluent Data Processing Pipeline
# A chainable class for applying the cleaning steps every table coming out of
# the data store goes through before it reaches the analytics core.

import logging
from collections import Counter
from typing import Any, Dict, List

import numpy as np
import pandas as pd

try:
    from .helpers import convert_to_numeric, _NA_REGEX_PATTERN
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in pipeline.py: could not import helpers. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)


class DataPipeline:
    """
    A fluent interface for applying a sequence of data processing operations.
    """
    def __init__(self, df: pd.DataFrame):
        if not isinstance(df, pd.DataFrame):
            raise TypeError("DataPipeline must be initialized with a pandas DataFrame.")
        self._df = df.copy()

    def get_df(self) -> pd.DataFrame:
        """Returns the processed DataFrame."""
        return self._df

    @staticmethod
    def _dedupe(names: List[str]) -> List[str]:
        """Suffixes repeated names with _0, _1, ... in order of appearance."""
        totals = Counter(names)
        seen: Counter = Counter()
        unique = []
        for name in names:
            if totals[name] > 1:
                unique.append(f"{name}_{seen[name]}")
                seen[name] += 1
            else:
                unique.append(name)
        return unique

    def clean_column_names(self) -> 'DataPipeline':
        """
        Normalizes headers from lab exports ("Site ID", "Concentration (gc/L)")
        to snake_case; blank headers become unnamed_col_<position>.
        """
        if len(self._df.columns) == 0:
            return self
        snake = (
            self._df.columns.astype(str).str.strip().str.lower()
            .str.replace(r'[^0-9a-z]+', '_', regex=True).str.strip('_')
        )
        self._df.columns = self._dedupe(
            [name or f"unnamed_col_{i}" for i, name in enumerate(snake)]
        )
        return self

    def standardize_missing_values(self, column_defaults: Dict[str, Any]) -> 'DataPipeline':
        """
        Fills gaps per column. Numeric defaults also coerce the column to
        numbers (int default -> int column); text defaults replace placeholder
        spellings such as "N/A" before filling.
        """
        for col, default in (column_defaults or {}).items():
            if col not in self._df.columns:
                continue
            if isinstance(default, (int, float, np.number)):
                self._df[col] = convert_to_numeric(
                    self._df[col], default_value=default,
                    target_type=int if isinstance(default, int) else float,
                )
            else:
                text = self._df[col].astype(object).replace(_NA_REGEX_PATTERN, np.nan, regex=True)
                self._df[col] = text.fillna(str(default))
        return self

    def convert_numeric_columns(self, numeric_columns: List[str]) -> 'DataPipeline':
        """Coerces columns to float, leaving unparseable values as NaN."""
        for col in numeric_columns:
            if col in self._df.columns:
                self._df[col] = convert_to_numeric(self._df[col], target_type=float)
        return self

    def convert_date_columns(self, date_columns: List[str], errors: str = 'coerce') -> 'DataPipeline':
        """Converts specified columns to calendar dates (no time component)."""
        if not date_columns:
            return self
        for col in date_columns:
            if col in self._df.columns:
                self._df[col] = pd.to_datetime(self._df[col], errors=errors).dt.normalize()
            else:
                logger.warning(f"Date conversion skipped: Column '{col}' not found.")
        return self
