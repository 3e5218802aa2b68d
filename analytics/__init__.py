# wastewatch_root/analytics/__init__.py
#
# Analytics Package API
# Forecasting, anomaly detection, alert prioritization and the small
# statistical and geographic utilities they share.

"""
Initializes the analytics package, making key functions and classes
available at the top level for easier, cleaner imports in other modules.
"""

# --- Utilities ---
from .geo import haversine_distance_km
from .timeseries import moving_average, volatility, decayed_confidence

# --- Forecasting & Anomaly Detection ---
from .forecasting import (
    ForecastEngine,
    generate_predictions,
    detect_anomalies,
)

# --- Alert Prioritization ---
from .prioritization import (
    rank_alert_priorities,
    calculate_alert_priorities,
    save_priorities,
    get_top_alerts,
)

# --- Anomaly Alerts ---
from .anomaly_alerts import (
    generate_anomaly_alerts,
    save_anomaly_alerts,
)


__all__ = [
    # Utilities
    "haversine_distance_km",
    "moving_average",
    "volatility",
    "decayed_confidence",

    # Forecasting
    "ForecastEngine",
    "generate_predictions",
    "detect_anomalies",

    # Prioritization
    "rank_alert_priorities",
    "calculate_alert_priorities",
    "save_priorities",
    "get_top_alerts",

    # Anomaly alerts
    "generate_anomaly_alerts",
    "save_anomaly_alerts",
]
