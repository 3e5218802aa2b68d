# wastewatch_root/data_processing/__init__.py
#
# Data Processing Package API
# Loading, cleaning and enrichment of the surveillance tables, plus the data
# store interface the analytics core reads from and writes to.

"""
Initializes the data_processing package, making key functions and classes
available at the top level for easier, cleaner imports in other modules.
"""

# --- Loading ---
from .loaders import (
    DataLoader,
    load_sampling_sites,
    load_pathogens,
    load_wastewater_readings,
    load_population_overrides,
)

# --- Preparation ---
from .pipeline import DataPipeline

# --- Enrichment ---
from .enrichment import (
    categorize_level,
    enrich_readings_with_features,
)

# --- Data Store ---
from .store import (
    DataStore,
    DataStoreError,
    DataFrameStore,
    CsvDataStore,
)


__all__ = [
    # --- Loading ---
    "DataLoader",
    "load_sampling_sites",
    "load_pathogens",
    "load_wastewater_readings",
    "load_population_overrides",

    # --- Preparation ---
    "DataPipeline",

    # --- Enrichment ---
    "categorize_level",
    "enrich_readings_with_features",

    # --- Data Store ---
    "DataStore",
    "DataStoreError",
    "DataFrameStore",
    "CsvDataStore",
]
