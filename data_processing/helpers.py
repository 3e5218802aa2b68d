# wastewatch_root/data_processing/helpers.py
#
# Core Data Utilities
# Numeric coercion for loosely-typed lab exports and a JSON loader that treats
# a missing or broken file as "no data".

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Lab and utility exports spell "no value" many ways.
_NA_REGEX_PATTERN = re.compile(
    r'(?i)^\s*(nan|none|n/a|#n/a|na|null|nil|<na>|undefined|unknown|-|)\s*$'
)


def _blank_to_nan(series: pd.Series) -> pd.Series:
    if pd.api.types.is_numeric_dtype(series.dtype):
        return series
    return series.replace(_NA_REGEX_PATTERN, np.nan, regex=True)


def convert_to_numeric(
    data: Any,
    default_value: Any = np.nan,
    target_type: Optional[Type] = None
) -> Any:
    """
    Coerces a scalar or Series to numbers.

    Placeholder strings ("N/A", "null", "-", ...) and unparseable values become
    NaN, then ``default_value`` where one is given. ``target_type=int`` falls
    back to the nullable Int64 dtype while NaNs remain.
    """
    if not isinstance(data, pd.Series):
        converted = convert_to_numeric(pd.Series([data], dtype=object), default_value, target_type)
        return converted.iloc[0]

    numbers = pd.to_numeric(_blank_to_nan(data), errors='coerce')
    if not pd.isna(default_value):
        numbers = numbers.fillna(default_value)

    if target_type is float:
        return numbers.astype(float)
    if target_type is int and pd.api.types.is_numeric_dtype(numbers.dtype):
        return numbers.astype(pd.Int64Dtype() if numbers.isna().any() else int)
    return numbers


def robust_json_load(file_path: Path, context: str = "JSON") -> Optional[Union[Dict, List]]:
    """Parsed JSON content, or None when the file is absent or unreadable."""
    log_ctx = f"{context}({file_path.name})"
    if not file_path.is_file():
        logger.warning(f"[{log_ctx}] No file at {file_path}; treating as empty.")
        return None
    try:
        return json.loads(file_path.read_text(encoding='utf-8'))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"[{log_ctx}] Could not parse JSON: {e}")
        return None
