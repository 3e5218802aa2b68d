# wastewatch_root/analytics/anomaly_alerts.py
#
# Anomaly Alert Generation
# Sweeps every active site x pathogen pair through the anomaly detector and
# turns each positive result into a human-readable alert record. Alerts are
# append-only; repeated sweeps can produce duplicates.

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import pandas as pd

try:
    from config.settings import settings
    from data_processing.store import DataStore
    from .forecasting import Clock, ForecastEngine, utc_now
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in anomaly_alerts.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)

ANOMALY_ALERT_COLUMNS = [
    'id', 'site_id', 'pathogen_id', 'site_name', 'pathogen_name',
    'severity', 'message', 'detected_at'
]
ALERT_TYPE_ANOMALY = "anomaly"


def anomaly_message(pathogen_name: str, site_name: str) -> str:
    multiplier = f"{settings.anomaly.std_multiplier:g}"
    return (
        f"Anomaly detected: {pathogen_name} levels show unusual spike at {site_name}. "
        f"Recent readings exceed {multiplier} standard deviations above baseline."
    )


def build_anomaly_alert(site: Dict[str, Any], pathogen: Dict[str, Any], clock: Clock) -> Dict[str, Any]:
    """Alert record for a flagged pair, stamped with the current time."""
    detected_at = clock()
    return {
        'id': f"{site['id']}-{pathogen['id']}-{int(detected_at.timestamp() * 1000)}",
        'site_id': site['id'],
        'pathogen_id': pathogen['id'],
        'site_name': site.get('name'),
        'pathogen_name': pathogen.get('name'),
        'severity': settings.anomaly.alert_severity,
        'message': anomaly_message(pathogen.get('name'), site.get('name')),
        'detected_at': detected_at.isoformat(),
    }


def generate_anomaly_alerts(
    store: DataStore,
    engine: Optional[ForecastEngine] = None,
    clock: Optional[Clock] = None,
    max_workers: Optional[int] = None,
) -> pd.DataFrame:
    """
    Runs the anomaly check for every active site and pathogen.

    Pairs are independent, so with ``max_workers`` > 1 they are checked on a
    thread pool; alerts keep site-then-pathogen order either way. A failure
    loading the sites or pathogens, or checking any pair, yields an empty result.
    """
    clock = clock or utc_now
    engine = engine or ForecastEngine(store, clock=clock)
    workers = max_workers or settings.anomaly.sweep_max_workers

    try:
        sites = store.fetch_sites(active_only=True)
        pathogens = store.fetch_pathogens()
    except Exception as e:
        logger.error(f"Error generating anomaly alerts: {e}", exc_info=True)
        return pd.DataFrame(columns=ANOMALY_ALERT_COLUMNS)

    if sites.empty or pathogens.empty:
        logger.info("No active sites or pathogens; anomaly sweep skipped.")
        return pd.DataFrame(columns=ANOMALY_ALERT_COLUMNS)

    pairs = [
        (site, pathogen)
        for site in sites.to_dict('records')
        for pathogen in pathogens.to_dict('records')
    ]

    def check(pair) -> bool:
        site, pathogen = pair
        return engine.detect_anomalies(site['id'], pathogen['id'])

    try:
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                flags = list(executor.map(check, pairs))
        else:
            flags = [check(pair) for pair in pairs]
    except Exception as e:
        logger.error(f"Error during anomaly sweep of {len(pairs)} pairs: {e}", exc_info=True)
        return pd.DataFrame(columns=ANOMALY_ALERT_COLUMNS)

    alerts: List[Dict[str, Any]] = [
        build_anomaly_alert(site, pathogen, clock)
        for (site, pathogen), flagged in zip(pairs, flags)
        if flagged
    ]
    logger.info(f"Anomaly sweep checked {len(pairs)} pairs and flagged {len(alerts)}.")
    return pd.DataFrame(alerts, columns=ANOMALY_ALERT_COLUMNS)


def save_anomaly_alerts(store: DataStore, alerts: pd.DataFrame) -> bool:
    """Appends alert rows to the store. Failures are logged and reported as False."""
    if alerts is None or alerts.empty:
        return True

    records = pd.DataFrame({
        'site_id': alerts['site_id'],
        'pathogen_id': alerts['pathogen_id'],
        'alert_type': ALERT_TYPE_ANOMALY,
        'severity': alerts['severity'],
        'message': alerts['message'],
        'read': False,
        'created_at': alerts['detected_at'],
    }).reset_index(drop=True)

    try:
        store.insert_alerts(records)
    except Exception as e:
        logger.error(f"Error saving {len(records)} anomaly alerts: {e}", exc_info=True)
        return False
    logger.info(f"Saved {len(records)} anomaly alerts.")
    return True
