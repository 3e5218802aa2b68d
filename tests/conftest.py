from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Sequence

import pandas as pd
import pytest

from data_processing.store import DataFrameStore

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
AUSTIN = (30.2672, -97.7431)


class ZeroJitterRng:
    """Stands in for a numpy Generator; always draws the interval midpoint."""

    def __init__(self):
        self.calls = 0

    def uniform(self, low, high):
        self.calls += 1
        return (low + high) / 2


def make_history(
    levels: Sequence[Optional[float]],
    site_id: str = "site-1",
    pathogen_id: str = "covid",
    end: date = FIXED_NOW.date() - timedelta(days=1),
    confidence: Optional[float] = 0.8,
    trend: str = "stable",
) -> pd.DataFrame:
    """Daily readings ending on ``end``, oldest first."""
    n = len(levels)
    dates = [end - timedelta(days=n - 1 - i) for i in range(n)]
    return pd.DataFrame({
        'site_id': site_id,
        'pathogen_id': pathogen_id,
        'concentration_level': list(levels),
        'level_category': None,
        'trend': trend,
        'sample_date': pd.to_datetime(dates),
        'confidence_score': confidence,
    })


def make_sites(rows: List[dict]) -> pd.DataFrame:
    defaults = {'latitude': AUSTIN[0], 'longitude': AUSTIN[1], 'population': 100, 'active': True}
    return pd.DataFrame([{**defaults, **row} for row in rows])


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def zero_rng():
    return ZeroJitterRng()


@pytest.fixture
def pathogens():
    return pd.DataFrame([
        {'id': 'covid', 'name': 'COVID-19', 'severity_level': 'high', 'color_code': '#D32F2F'},
        {'id': 'flu', 'name': 'Influenza A', 'severity_level': 'medium', 'color_code': '#FFA000'},
    ])


@pytest.fixture
def sites():
    return make_sites([
        {'id': 'site-1', 'name': 'Austin Walnut Creek', 'population': 2_000_000},
        {'id': 'site-2', 'name': 'Houston 69th St', 'latitude': 29.7604, 'longitude': -95.3698,
         'population': 300_000},
        {'id': 'site-3', 'name': 'Retired Plant', 'active': False},
    ])


@pytest.fixture
def surveillance_store(sites, pathogens):
    """Site-1/covid spikes at the end; every other pair is flat."""
    spike = make_history([50.0] * 11 + [90.0, 95.0, 100.0], site_id='site-1', pathogen_id='covid')
    flat = [
        make_history([30.0] * 14, site_id=s, pathogen_id=p)
        for s, p in (('site-1', 'flu'), ('site-2', 'covid'), ('site-2', 'flu'))
    ]
    readings = pd.concat([spike, *flat], ignore_index=True)
    return DataFrameStore(sites=sites, pathogens=pathogens, readings=readings)
