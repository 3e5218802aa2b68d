# wastewatch_root/data_processing/store.py
#
# Data Store Interface
# The analytics core never talks to a database directly. It reads plain tables
# through the DataStore query interface below and hands derived records
# (predictions, alerts, priorities) back to it for persistence.

import logging
import threading
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

try:
    from config.settings import settings
    from .enrichment import enrich_readings_with_features
    from .loaders import (
        DataLoader,
        PATHOGEN_COLUMNS,
        POPULATION_COLUMNS,
        READING_COLUMNS,
        SITE_COLUMNS,
        load_output_table,
        load_pathogens,
        load_population_overrides,
        load_sampling_sites,
        load_wastewater_readings,
    )
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in store.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)

PREDICTION_COLUMNS = [
    'site_id', 'pathogen_id', 'prediction_date', 'predicted_level',
    'predicted_category', 'confidence_score', 'model_type', 'factors_used'
]
ALERT_COLUMNS = [
    'site_id', 'pathogen_id', 'alert_type', 'severity', 'message', 'read', 'created_at'
]
PRIORITY_COLUMNS = [
    'site_id', 'pathogen_id', 'priority_score', 'danger_level', 'concentration_factor',
    'proximity_factor', 'trend_factor', 'population_factor', 'calculated_at'
]


class DataStoreError(Exception):
    """Raised when the backing store is unreachable or returns malformed data."""


class DataStore(ABC):
    """Generic query interface over the surveillance tables."""

    @abstractmethod
    def fetch_sites(self, active_only: bool = True) -> pd.DataFrame:
        ...

    @abstractmethod
    def fetch_pathogens(self) -> pd.DataFrame:
        ...

    @abstractmethod
    def fetch_readings(
        self,
        site_id: Optional[str] = None,
        pathogen_id: Optional[str] = None,
        since: Optional[date] = None,
        ascending: bool = True,
    ) -> pd.DataFrame:
        """Readings filtered by pair and start date, ordered by sample date."""

    @abstractmethod
    def fetch_population_overrides(self) -> pd.DataFrame:
        ...

    @abstractmethod
    def fetch_priorities(self, limit: int) -> pd.DataFrame:
        """Stored priority rows, highest score first."""

    @abstractmethod
    def insert_predictions(self, records: pd.DataFrame) -> None:
        ...

    @abstractmethod
    def insert_alerts(self, records: pd.DataFrame) -> None:
        ...

    @abstractmethod
    def delete_priorities_before(self, cutoff: datetime) -> int:
        """Deletes priority rows calculated before ``cutoff``; returns the count."""

    @abstractmethod
    def upsert_priorities(self, records: pd.DataFrame) -> None:
        """Inserts priority rows, replacing any existing row for the same pair."""


class DataFrameStore(DataStore):
    """
    An in-process store holding every table as a DataFrame. Reads return
    copies, so callers can never mutate the stored history.
    """
    def __init__(
        self,
        sites: Optional[pd.DataFrame] = None,
        pathogens: Optional[pd.DataFrame] = None,
        readings: Optional[pd.DataFrame] = None,
        population_overrides: Optional[pd.DataFrame] = None,
    ):
        self._lock = threading.Lock()
        self._tables: Dict[str, pd.DataFrame] = {
            'sites': self._or_empty(sites, SITE_COLUMNS),
            'pathogens': self._or_empty(pathogens, PATHOGEN_COLUMNS),
            'readings': self._prepare_readings(readings),
            'population': self._or_empty(population_overrides, POPULATION_COLUMNS),
            'predictions': pd.DataFrame(columns=PREDICTION_COLUMNS),
            'alerts': pd.DataFrame(columns=ALERT_COLUMNS),
            'priorities': pd.DataFrame(columns=PRIORITY_COLUMNS),
        }

    @staticmethod
    def _or_empty(df: Optional[pd.DataFrame], columns) -> pd.DataFrame:
        if df is None or df.empty:
            return pd.DataFrame(columns=columns if df is None else df.columns.union(columns, sort=False))
        return df.reset_index(drop=True).copy()

    @staticmethod
    def _prepare_readings(readings: Optional[pd.DataFrame]) -> pd.DataFrame:
        if readings is None or readings.empty:
            return pd.DataFrame(columns=READING_COLUMNS)
        return enrich_readings_with_features(readings).reset_index(drop=True)

    def table(self, name: str) -> pd.DataFrame:
        """Returns a copy of a raw table, for inspection."""
        with self._lock:
            return self._tables[name].copy()

    def fetch_sites(self, active_only: bool = True) -> pd.DataFrame:
        sites = self.table('sites')
        if active_only and 'active' in sites.columns:
            sites = sites[sites['active'].astype(bool)]
        return sites.reset_index(drop=True)

    def fetch_pathogens(self) -> pd.DataFrame:
        return self.table('pathogens')

    def fetch_readings(
        self,
        site_id: Optional[str] = None,
        pathogen_id: Optional[str] = None,
        since: Optional[date] = None,
        ascending: bool = True,
    ) -> pd.DataFrame:
        readings = self.table('readings')
        if readings.empty:
            return readings
        mask = pd.Series(True, index=readings.index)
        if site_id is not None:
            mask &= readings['site_id'] == site_id
        if pathogen_id is not None:
            mask &= readings['pathogen_id'] == pathogen_id
        if since is not None:
            mask &= readings['sample_date'] >= pd.Timestamp(since)
        filtered = readings[mask]
        return filtered.sort_values('sample_date', ascending=ascending, kind='stable').reset_index(drop=True)

    def fetch_population_overrides(self) -> pd.DataFrame:
        return self.table('population')

    def fetch_priorities(self, limit: int) -> pd.DataFrame:
        priorities = self.table('priorities')
        ordered = priorities.sort_values('priority_score', ascending=False, kind='stable')
        return ordered.head(limit).reset_index(drop=True)

    def _append(self, name: str, records: pd.DataFrame) -> None:
        with self._lock:
            current = self._tables[name]
            self._tables[name] = records.copy() if current.empty else pd.concat(
                [current, records], ignore_index=True
            )

    def insert_predictions(self, records: pd.DataFrame) -> None:
        self._append('predictions', records)

    def insert_alerts(self, records: pd.DataFrame) -> None:
        self._append('alerts', records)

    def delete_priorities_before(self, cutoff: datetime) -> int:
        with self._lock:
            priorities = self._tables['priorities']
            if priorities.empty:
                return 0
            calculated = pd.to_datetime(priorities['calculated_at'], utc=True, errors='coerce')
            cutoff_ts = pd.Timestamp(cutoff)
            if cutoff_ts.tzinfo is None:
                cutoff_ts = cutoff_ts.tz_localize('UTC')
            stale = calculated < cutoff_ts
            self._tables['priorities'] = priorities[~stale].reset_index(drop=True)
            return int(stale.sum())

    def upsert_priorities(self, records: pd.DataFrame) -> None:
        with self._lock:
            current = self._tables['priorities']
            if not current.empty:
                incoming = pd.MultiIndex.from_frame(records[['site_id', 'pathogen_id']])
                existing = pd.MultiIndex.from_frame(current[['site_id', 'pathogen_id']])
                current = current[~existing.isin(incoming)]
            self._tables['priorities'] = records.copy() if current.empty else pd.concat(
                [current, records], ignore_index=True
            )


class CsvDataStore(DataFrameStore):
    """
    A DataFrameStore loaded from, and written back to, flat files in a data
    directory. Output tables are rewritten in full after every write.
    """
    def __init__(self, data_dir: Optional[Path] = None):
        self.loader = DataLoader(data_dir or settings.directories.data_sources)
        super().__init__(
            sites=load_sampling_sites(self.loader),
            pathogens=load_pathogens(self.loader),
            population_overrides=load_population_overrides(self.loader),
        )
        # Readings are already enriched by the loader.
        self._tables['readings'] = load_wastewater_readings(self.loader)
        for name, file_name, columns in (
            ('predictions', settings.predictions_file, PREDICTION_COLUMNS),
            ('alerts', settings.alerts_file, ALERT_COLUMNS),
            ('priorities', settings.priorities_file, PRIORITY_COLUMNS),
        ):
            existing = load_output_table(file_name, self.loader)
            if not existing.empty:
                for col in ('site_id', 'pathogen_id'):
                    if col in existing.columns:
                        existing[col] = existing[col].astype(str)
                self._tables[name] = existing
            else:
                self._tables[name] = pd.DataFrame(columns=columns)
        self._files = {
            'predictions': settings.predictions_file,
            'alerts': settings.alerts_file,
            'priorities': settings.priorities_file,
        }

    def _persist(self, name: str) -> None:
        path = self.loader.get_path(self._files[name])
        try:
            with self._lock:
                self._tables[name].to_csv(path, index=False)
        except OSError as e:
            raise DataStoreError(f"Could not write table '{name}' to {path}: {e}") from e
        logger.debug(f"Persisted {name} table to {path}.")

    def insert_predictions(self, records: pd.DataFrame) -> None:
        super().insert_predictions(records)
        self._persist('predictions')

    def insert_alerts(self, records: pd.DataFrame) -> None:
        super().insert_alerts(records)
        self._persist('alerts')

    def delete_priorities_before(self, cutoff: datetime) -> int:
        deleted = super().delete_priorities_before(cutoff)
        if deleted:
            self._persist('priorities')
        return deleted

    def upsert_priorities(self, records: pd.DataFrame) -> None:
        super().upsert_priorities(records)
        self._persist('priorities')
