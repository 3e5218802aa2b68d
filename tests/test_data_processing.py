import json
from datetime import timedelta

import numpy as np
import pandas as pd
import pytest

from data_processing.enrichment import categorize_level, enrich_readings_with_features
from data_processing.helpers import convert_to_numeric, robust_json_load
from data_processing.loaders import DataLoader, load_pathogens, load_sampling_sites
from data_processing.pipeline import DataPipeline
from data_processing.store import CsvDataStore, DataFrameStore

from conftest import FIXED_NOW, make_history


@pytest.fixture
def data_dir(tmp_path):
    (tmp_path / "sampling_sites.csv").write_text(
        "ID,Name,Latitude,Longitude,Population,Active\n"
        "site-1,Austin Walnut Creek,30.2672,-97.7431,2000000,true\n"
        "site-2,Retired Plant,29.7604,-95.3698,1000,false\n"
    )
    (tmp_path / "pathogens.json").write_text(json.dumps([
        {"id": "covid", "name": "COVID-19", "severity_level": "high", "color_code": "#D32F2F"},
        "not a record",
    ]))
    rows = ["site_id,pathogen_id,concentration_level,level_category,trend,sample_date,confidence_score"]
    for day in range(1, 15):
        level = 100 if day > 11 else 50
        rows.append(f"site-1,covid,{level},,Increasing,2026-10-{day:02d},0.8")
    (tmp_path / "wastewater_readings.csv").write_text("\n".join(rows) + "\n")
    return tmp_path


class TestEnrichment:
    @pytest.mark.parametrize("level, expected", [
        (0.0, 'low'), (19.99, 'low'), (20.0, 'medium'), (49.9, 'medium'), (50.0, 'high'), (5000.0, 'high'),
    ])
    def test_categorize_level(self, level, expected):
        assert categorize_level(level) == expected

    def test_derives_missing_categories(self):
        enriched = enrich_readings_with_features(make_history([10.0, 20.0, 49.9, 50.0, None]))
        assert list(enriched['level_category'].iloc[:4]) == ['low', 'medium', 'medium', 'high']
        assert pd.isna(enriched['level_category'].iloc[4])

    def test_keeps_and_normalizes_supplied_labels(self):
        history = make_history([10.0, 10.0], trend=" Increasing ")
        history['level_category'] = ['HIGH', None]
        enriched = enrich_readings_with_features(history)
        assert list(enriched['level_category']) == ['high', 'low']
        assert set(enriched['trend']) == {'increasing'}

    def test_missing_trend_defaults_to_stable(self):
        history = make_history([30.0, 30.0])
        history['trend'] = [None, 'decreasing']
        assert list(enrich_readings_with_features(history)['trend']) == ['stable', 'decreasing']

    def test_empty_input(self):
        assert enrich_readings_with_features(pd.DataFrame()).empty


class TestHelpers:
    def test_convert_to_numeric_handles_na_spellings(self):
        result = convert_to_numeric(pd.Series(["1.5", "N/A", "null", "3"]))
        assert result.iloc[0] == 1.5
        assert result.iloc[1:3].isna().all()
        assert result.iloc[3] == 3

    def test_convert_to_numeric_scalar_default(self):
        assert convert_to_numeric("unknown", default_value=0) == 0
        assert np.isnan(convert_to_numeric("abc"))

    def test_robust_json_load(self, tmp_path):
        assert robust_json_load(tmp_path / "missing.json") is None
        broken = tmp_path / "broken.json"
        broken.write_text("{not json")
        assert robust_json_load(broken) is None
        good = tmp_path / "good.json"
        good.write_text('{"items": []}')
        assert robust_json_load(good) == {"items": []}


class TestDataPipeline:
    def test_clean_column_names(self):
        df = pd.DataFrame(columns=["Site ID", "Concentration (gc/L)", "site_id", ""])
        cleaned = DataPipeline(df).clean_column_names().get_df()
        assert list(cleaned.columns) == ["site_id_0", "concentration_gc_l", "site_id_1", "unnamed_col_3"]

    def test_standardize_missing_values(self):
        df = pd.DataFrame({'population': ["1200", "N/A", None], 'name': ["Plant", "-", None]})
        filled = DataPipeline(df).standardize_missing_values({'population': 0, 'name': 'Unknown'}).get_df()
        assert list(filled['population']) == [1200, 0, 0]
        assert list(filled['name']) == ['Plant', 'Unknown', 'Unknown']

    def test_does_not_mutate_input(self):
        df = pd.DataFrame({"A": [1]})
        DataPipeline(df).clean_column_names()
        assert list(df.columns) == ["A"]

    def test_rejects_non_frames(self):
        with pytest.raises(TypeError):
            DataPipeline([1, 2, 3])


class TestLoaders:
    def test_sites_active_flag_and_columns(self, data_dir):
        sites = load_sampling_sites(DataLoader(data_dir))
        assert list(sites['id']) == ['site-1', 'site-2']
        assert list(sites['active']) == [True, False]
        assert sites['latitude'].dtype == float

    def test_pathogens_skip_non_records(self, data_dir):
        pathogens = load_pathogens(DataLoader(data_dir))
        assert list(pathogens['id']) == ['covid']

    def test_missing_sources_give_empty_frames(self, tmp_path):
        assert load_sampling_sites(DataLoader(tmp_path)).empty
        assert load_pathogens(DataLoader(tmp_path)).empty


class TestDataFrameStore:
    def test_reads_are_copies(self):
        store = DataFrameStore(readings=make_history([10.0, 20.0]))
        store.fetch_readings().loc[0, 'concentration_level'] = 999.0
        assert store.fetch_readings()['concentration_level'].iloc[0] == 10.0

    def test_readings_filtered_and_ordered(self):
        readings = pd.concat([
            make_history([1.0, 2.0, 3.0]),
            make_history([7.0], pathogen_id='flu'),
        ], ignore_index=True)
        store = DataFrameStore(readings=readings)
        latest_first = store.fetch_readings('site-1', 'covid', ascending=False)
        assert list(latest_first['concentration_level']) == [3.0, 2.0, 1.0]
        since = FIXED_NOW.date() - timedelta(days=2)
        assert list(store.fetch_readings('site-1', 'covid', since=since)['concentration_level']) == [2.0, 3.0]

    def test_upsert_replaces_existing_pair(self):
        store = DataFrameStore()
        store.upsert_priorities(pd.DataFrame([
            {'site_id': 's', 'pathogen_id': 'p', 'priority_score': 1.0, 'calculated_at': FIXED_NOW.isoformat()},
            {'site_id': 's', 'pathogen_id': 'q', 'priority_score': 2.0, 'calculated_at': FIXED_NOW.isoformat()},
        ]))
        store.upsert_priorities(pd.DataFrame([
            {'site_id': 's', 'pathogen_id': 'p', 'priority_score': 9.0, 'calculated_at': FIXED_NOW.isoformat()},
        ]))
        stored = store.fetch_priorities(10)
        assert list(stored['priority_score']) == [9.0, 2.0]


class TestCsvDataStore:
    def test_loads_tables_from_directory(self, data_dir):
        store = CsvDataStore(data_dir)
        assert list(store.fetch_sites()['id']) == ['site-1']
        readings = store.fetch_readings('site-1', 'covid')
        assert len(readings) == 14
        assert set(readings['trend']) == {'increasing'}
        assert readings['level_category'].iloc[-1] == 'high'

    def test_writes_are_persisted_and_reloaded(self, data_dir):
        store = CsvDataStore(data_dir)
        store.insert_alerts(pd.DataFrame([{
            'site_id': 'site-1', 'pathogen_id': 'covid', 'alert_type': 'anomaly', 'severity': 'critical',
            'message': 'spike', 'read': False, 'created_at': FIXED_NOW.isoformat(),
        }]))
        assert (data_dir / "alerts.csv").exists()

        reloaded = CsvDataStore(data_dir)
        alerts = reloaded.table('alerts')
        assert len(alerts) == 1
        assert alerts['site_id'].iloc[0] == 'site-1'
