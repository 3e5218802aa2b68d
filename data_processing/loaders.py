# wastewatch_root/data_processing/loaders.py
#
# Unified Data Loading Engine
# Loads the surveillance tables (sampling sites, pathogen catalog, wastewater
# readings, population overrides) from flat files into cleaned, typed
# DataFrames. A missing or malformed source yields an empty DataFrame.

import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd

try:
    from config.settings import settings
    from .pipeline import DataPipeline
    from .helpers import robust_json_load
    from .enrichment import enrich_readings_with_features
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in loaders.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)

SITE_COLUMNS = ['id', 'name', 'latitude', 'longitude', 'population', 'active']
PATHOGEN_COLUMNS = ['id', 'name', 'severity_level', 'color_code']
READING_COLUMNS = [
    'site_id', 'pathogen_id', 'concentration_level', 'level_category',
    'trend', 'sample_date', 'confidence_score'
]
POPULATION_COLUMNS = ['site_id', 'total_population']


class DataLoader:
    """
    A configuration-driven engine for loading and preparing data sources.
    All data entering the analytics core passes through the same cleaning
    pipeline so the column contract is consistent.
    """
    def __init__(self, data_source_dir: Path):
        self.base_dir = Path(data_source_dir)
        if not self.base_dir.exists():
            logger.warning(f"Data source directory not found: {self.base_dir}. Creating it.")
            self.base_dir.mkdir(parents=True, exist_ok=True)

    def get_path(self, file_name: str) -> Path:
        """Resolves a file name relative to the base data directory."""
        path = Path(file_name)
        return path if path.is_absolute() else self.base_dir / path

    def load_csv(self, file_name: str, date_cols: Optional[List[str]] = None) -> pd.DataFrame:
        """
        Loads a CSV file and applies the standard cleaning pipeline.
        Returns an empty DataFrame if the file is missing or unreadable.
        """
        full_path = self.get_path(file_name)
        log_ctx = f"CSV({full_path.name})"
        logger.debug(f"[{log_ctx}] Attempting to load data from {full_path}")

        if not full_path.exists():
            logger.warning(f"[{log_ctx}] Source file not found. Returning empty DataFrame.")
            return pd.DataFrame()

        try:
            df = pd.read_csv(full_path, low_memory=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            logger.error(f"[{log_ctx}] File is malformed: {e}")
            return pd.DataFrame()

        if df.empty:
            logger.warning(f"[{log_ctx}] File is empty.")
            return pd.DataFrame(columns=DataPipeline(df).clean_column_names().get_df().columns)

        pipeline = DataPipeline(df).clean_column_names()
        if date_cols:
            pipeline.convert_date_columns(date_cols)
        df_processed = pipeline.get_df()
        logger.info(f"[{log_ctx}] Successfully loaded and cleaned {len(df_processed)} records.")
        return df_processed

    def load_json_records(self, file_name: str, context: str = "JSON") -> pd.DataFrame:
        """Loads a JSON list of objects (or {"items": [...]}) into a DataFrame."""
        data = robust_json_load(self.get_path(file_name), context)
        if isinstance(data, dict):
            data = data.get("items")
        if not isinstance(data, list):
            return pd.DataFrame()
        records = [item for item in data if isinstance(item, dict)]
        return DataPipeline(pd.DataFrame(records)).clean_column_names().get_df()


_data_loader = DataLoader(settings.directories.data_sources)


# --- Public API Functions for Data Loading ---

def load_sampling_sites(loader: Optional[DataLoader] = None) -> pd.DataFrame:
    """Loads sampling sites with numeric coordinates and a boolean active flag."""
    df = (loader or _data_loader).load_csv(settings.sites_file)
    if df.empty:
        return pd.DataFrame(columns=SITE_COLUMNS)
    df = (
        DataPipeline(df)
        .convert_numeric_columns(['latitude', 'longitude'])
        .standardize_missing_values({'population': 0, 'name': 'Unknown'})
        .get_df()
    )
    df['id'] = df['id'].astype(str)
    if 'active' not in df.columns:
        df['active'] = True
    elif df['active'].dtype != bool:
        flags = df['active'].astype(str).str.strip().str.lower()
        df['active'] = df['active'].isna() | flags.isin(['true', '1', 'yes', 't'])
    return df


def load_pathogens(loader: Optional[DataLoader] = None) -> pd.DataFrame:
    """Loads the pathogen catalog from its JSON file."""
    df = (loader or _data_loader).load_json_records(settings.pathogens_file, "Pathogens")
    if df.empty:
        return pd.DataFrame(columns=PATHOGEN_COLUMNS)
    df = DataPipeline(df).standardize_missing_values(
        {'severity_level': 'low', 'color_code': '#616161'}
    ).get_df()
    df['id'] = df['id'].astype(str)
    return df


def load_wastewater_readings(loader: Optional[DataLoader] = None) -> pd.DataFrame:
    """Loads and enriches all wastewater readings."""
    df = (loader or _data_loader).load_csv(settings.readings_file, date_cols=['sample_date'])
    if df.empty:
        return pd.DataFrame(columns=READING_COLUMNS)
    df = enrich_readings_with_features(df)
    for col in ('site_id', 'pathogen_id'):
        df[col] = df[col].astype(str)
    return df


def load_population_overrides(loader: Optional[DataLoader] = None) -> pd.DataFrame:
    """Loads per-site population overrides. Usually absent."""
    df = (loader or _data_loader).load_csv(settings.population_file)
    if df.empty:
        return pd.DataFrame(columns=POPULATION_COLUMNS)
    df = DataPipeline(df).standardize_missing_values({'total_population': 0}).get_df()
    df['site_id'] = df['site_id'].astype(str)
    return df


def load_output_table(file_name: str, loader: Optional[DataLoader] = None) -> pd.DataFrame:
    """Loads a previously written output table (predictions, alerts, priorities)."""
    return (loader or _data_loader).load_csv(file_name)
