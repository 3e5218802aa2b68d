# wastewatch_root/analytics/prioritization.py
#
# Alert Priority Ranking
# Scores every (site, pathogen) pair that has a current reading by combining
# pathogen severity, concentration, distance from the user, trend direction
# and population served, then ranks the pairs from most to least urgent.

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd

try:
    from config.settings import settings
    from data_processing.store import DataStore
    from .forecasting import Clock, utc_now
    from .geo import haversine_distance_km
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in prioritization.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)

PopulationLookup = Callable[[str], Optional[float]]

FACTOR_COLUMNS = [
    'danger_level', 'concentration_factor', 'proximity_factor', 'trend_factor', 'population_factor'
]
PRIORITY_RESULT_COLUMNS = [
    'site_id', 'pathogen_id', 'priority_score', *FACTOR_COLUMNS,
    'distance_km', 'site_name', 'pathogen_name'
]

SEVERITY_WEIGHTS: Dict[str, float] = {'high': 3.0, 'medium': 2.0, 'low': 1.0}
TREND_WEIGHTS: Dict[str, float] = {'increasing': 1.5, 'stable': 1.0, 'decreasing': 0.5}
# Applied to any severity or trend label missing from the tables above.
DEFAULT_LABEL_WEIGHT = 1.0

CATEGORY_CONCENTRATION_FACTORS: Dict[str, float] = {'high': 8.0, 'medium': 5.0}
DEFAULT_CATEGORY_CONCENTRATION_FACTOR = 2.0

# (exclusive lower bound, factor), checked top to bottom.
CONCENTRATION_STEPS = [(1000, 10.0), (500, 8.0), (250, 6.0), (100, 4.0), (50, 2.0)]
POPULATION_STEPS = [(1_000_000, 10.0), (500_000, 8.0), (250_000, 6.0), (100_000, 4.0), (50_000, 2.0)]
# (exclusive upper bound in km, factor)
PROXIMITY_STEPS = [(10, 10.0), (25, 8.0), (50, 6.0), (100, 4.0), (200, 2.0)]
FLOOR_FACTOR = 1.0


def _normalize_label(value: Any) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return str(value).strip().lower()


def _is_missing_or_zero(value: Any) -> bool:
    return value is None or pd.isna(value) or value == 0


def round_half_up(value: float, digits: int = 1) -> float:
    """Rounds halves away from zero for positive values (1.25 -> 1.3)."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def danger_level(severity: Any) -> float:
    """Weight of a pathogen severity label; unknown labels weigh 1.0."""
    return SEVERITY_WEIGHTS.get(_normalize_label(severity), DEFAULT_LABEL_WEIGHT)


def trend_factor(trend: Any) -> float:
    """Weight of a reading's trend label; unknown labels weigh 1.0."""
    return TREND_WEIGHTS.get(_normalize_label(trend), DEFAULT_LABEL_WEIGHT)


def concentration_factor(concentration: Any, level_category: Any) -> float:
    """
    Step factor on the raw concentration. Without a usable concentration
    (missing or zero) the level category decides: high 8, medium 5, else 2.
    """
    if _is_missing_or_zero(concentration):
        return CATEGORY_CONCENTRATION_FACTORS.get(
            _normalize_label(level_category), DEFAULT_CATEGORY_CONCENTRATION_FACTOR
        )
    for lower_bound, factor in CONCENTRATION_STEPS:
        if concentration > lower_bound:
            return factor
    return FLOOR_FACTOR


def proximity_factor(distance_km: float) -> float:
    for upper_bound, factor in PROXIMITY_STEPS:
        if distance_km < upper_bound:
            return factor
    return FLOOR_FACTOR


def population_factor(population: float) -> float:
    for lower_bound, factor in POPULATION_STEPS:
        if population > lower_bound:
            return factor
    return FLOOR_FACTOR


def composite_priority_score(factors: Dict[str, float]) -> float:
    """
    Weighted sum of the five factors, rounded to one decimal.

    Danger and trend are multiplied by their scale (10) after weighting while
    the other three terms are not; existing score magnitudes rely on this.
    """
    cfg = settings.priority
    score = (
        factors['danger_level'] * cfg.danger_weight * cfg.danger_scale
        + factors['concentration_factor'] * cfg.concentration_weight
        + factors['proximity_factor'] * cfg.proximity_weight
        + factors['trend_factor'] * cfg.trend_weight * cfg.trend_scale
        + factors['population_factor'] * cfg.population_weight
    )
    return round_half_up(score, 1)


def no_population_override(site_id: str) -> Optional[float]:
    """Default population lookup: no site has an override."""
    return None


def rank_alert_priorities(
    sites: pd.DataFrame,
    pathogens: pd.DataFrame,
    readings: pd.DataFrame,
    user_latitude: float,
    user_longitude: float,
    population_lookup: Optional[PopulationLookup] = None,
) -> pd.DataFrame:
    """
    Scores and ranks every (active site, pathogen) pair that has a reading.

    Args:
        sites: Sampling sites; rows with a false ``active`` flag are skipped.
        pathogens: Pathogen catalog with ``severity_level``.
        readings: Current readings, most recent first. The first reading seen
                  for a pair is the one scored.
        user_latitude: User position, decimal degrees.
        user_longitude: User position, decimal degrees.
        population_lookup: Optional per-site population override; a missing
                           or zero override falls back to the site population.

    Returns:
        Priority records sorted by score, highest first. Equal scores keep
        their site-then-pathogen input order.
    """
    if sites is None or pathogens is None or readings is None:
        return pd.DataFrame(columns=PRIORITY_RESULT_COLUMNS)
    if sites.empty or pathogens.empty or readings.empty:
        return pd.DataFrame(columns=PRIORITY_RESULT_COLUMNS)

    lookup = population_lookup or no_population_override
    if 'active' in sites.columns:
        sites = sites[sites['active'].astype(bool)]

    latest_readings: Dict[tuple, Any] = {}
    for reading in readings.to_dict('records'):
        latest_readings.setdefault((reading['site_id'], reading['pathogen_id']), reading)

    records: List[Dict[str, Any]] = []
    for site in sites.to_dict('records'):
        coords = pd.to_numeric(pd.Series([site.get('latitude'), site.get('longitude')]), errors='coerce')
        if not np.isfinite(coords.to_numpy(dtype=float)).all():
            logger.warning(f"Site {site.get('id')} has no usable coordinates; skipped in priority ranking.")
            continue
        distance = haversine_distance_km(
            user_latitude, user_longitude, site['latitude'], site['longitude']
        )
        override = lookup(site['id'])
        site_population = site.get('population', 0)
        population = override if not _is_missing_or_zero(override) else site_population
        if population is None or pd.isna(population):
            population = 0

        for pathogen in pathogens.to_dict('records'):
            reading = latest_readings.get((site['id'], pathogen['id']))
            if reading is None:
                continue

            factors = {
                'danger_level': danger_level(pathogen.get('severity_level')),
                'concentration_factor': concentration_factor(
                    reading.get('concentration_level'), reading.get('level_category')
                ),
                'proximity_factor': proximity_factor(distance),
                'trend_factor': trend_factor(reading.get('trend')),
                'population_factor': population_factor(population),
            }
            records.append({
                'site_id': site['id'],
                'pathogen_id': pathogen['id'],
                'priority_score': composite_priority_score(factors),
                **factors,
                'distance_km': round_half_up(distance, 1),
                'site_name': site.get('name'),
                'pathogen_name': pathogen.get('name'),
            })

    ranked = sorted(records, key=lambda r: r['priority_score'], reverse=True)
    return pd.DataFrame(ranked, columns=PRIORITY_RESULT_COLUMNS)


def save_priorities(store: DataStore, priorities: pd.DataFrame, now: datetime) -> bool:
    """
    Purges stored priorities older than the staleness window, then upserts
    the top-ranked records. Failures are logged and reported as False.
    """
    cfg = settings.priority
    try:
        cutoff = now - timedelta(hours=cfg.stale_after_hours)
        purged = store.delete_priorities_before(cutoff)
        if purged:
            logger.info(f"Purged {purged} priority records calculated before {cutoff.isoformat()}.")

        if priorities.empty:
            return True
        records = priorities.head(cfg.persist_top_n)[['site_id', 'pathogen_id', 'priority_score', *FACTOR_COLUMNS]].copy()
        records['calculated_at'] = now.isoformat()
        store.upsert_priorities(records.reset_index(drop=True))
    except Exception as e:
        logger.error(f"Error saving priorities: {e}", exc_info=True)
        return False
    return True


def calculate_alert_priorities(
    store: DataStore,
    user_latitude: float,
    user_longitude: float,
    clock: Optional[Clock] = None,
) -> pd.DataFrame:
    """
    Loads sites, pathogens, readings and population overrides from the store,
    ranks every pair for the user's position and persists the top records.

    A read failure yields an empty ranking. A write failure is logged and the
    ranking is still returned.
    """
    now = (clock or utc_now)()
    try:
        sites = store.fetch_sites(active_only=True)
        pathogens = store.fetch_pathogens()
        readings = store.fetch_readings(ascending=False)
    except Exception as e:
        logger.error(f"Error loading data for alert priorities: {e}", exc_info=True)
        return pd.DataFrame(columns=PRIORITY_RESULT_COLUMNS)

    try:
        overrides = store.fetch_population_overrides()
    except Exception as e:
        logger.warning(f"Population overrides unavailable, using site populations: {e}")
        overrides = pd.DataFrame()

    population_lookup = no_population_override
    if not overrides.empty and {'site_id', 'total_population'} <= set(overrides.columns):
        population_lookup = dict(zip(overrides['site_id'], overrides['total_population'])).get

    try:
        priorities = rank_alert_priorities(
            sites, pathogens, readings, user_latitude, user_longitude, population_lookup
        )
    except Exception as e:
        logger.error(f"Error ranking alert priorities: {e}", exc_info=True)
        return pd.DataFrame(columns=PRIORITY_RESULT_COLUMNS)
    logger.info(f"Ranked {len(priorities)} site/pathogen pairs for alert priority.")
    save_priorities(store, priorities, now)
    return priorities


def get_top_alerts(store: DataStore, limit: Optional[int] = None) -> pd.DataFrame:
    """
    Reads back the highest stored priorities with site and pathogen names.
    Distance is not stored, so it is reported as 0.
    """
    if limit is None:
        limit = settings.priority.top_alerts_default_limit
    try:
        stored = store.fetch_priorities(limit)
        sites = store.fetch_sites(active_only=False)
        pathogens = store.fetch_pathogens()
    except Exception as e:
        logger.error(f"Error getting top alerts: {e}", exc_info=True)
        return pd.DataFrame(columns=PRIORITY_RESULT_COLUMNS)

    if stored.empty:
        return pd.DataFrame(columns=PRIORITY_RESULT_COLUMNS)

    site_names = dict(zip(sites['id'], sites['name'])) if not sites.empty else {}
    pathogen_names = dict(zip(pathogens['id'], pathogens['name'])) if not pathogens.empty else {}

    top = stored.copy()
    top['distance_km'] = 0.0
    top['site_name'] = top['site_id'].map(site_names).fillna('Unknown')
    top['pathogen_name'] = top['pathogen_id'].map(pathogen_names).fillna('Unknown')
    return top[PRIORITY_RESULT_COLUMNS].reset_index(drop=True)
