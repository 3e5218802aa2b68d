# wastewatch_root/run_analytics.py
#
# Command-line entry point for the surveillance analytics.
# Configures logging from settings, opens the CSV-backed data store and runs
# one of: alert priority ranking, a pathogen forecast, or an anomaly sweep.

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

try:
    from config.settings import settings
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR: The application's configuration could not be loaded. {e}", exc_info=True)
    raise

from analytics import (
    ForecastEngine,
    calculate_alert_priorities,
    generate_anomaly_alerts,
    get_top_alerts,
    save_anomaly_alerts,
)
from data_processing import CsvDataStore
from visualization import plot_alert_priorities, plot_pathogen_forecast

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.app.log_level,
        format=settings.app.log_format,
        datefmt=settings.app.log_date_format,
        force=True
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{settings.app.name} v{settings.app.version}")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Directory holding the surveillance tables (default: settings).")
    sub = parser.add_subparsers(dest="command", required=True)

    p_prio = sub.add_parser("priorities", help="Rank site/pathogen pairs for a user location.")
    p_prio.add_argument("--lat", type=float, required=True)
    p_prio.add_argument("--lon", type=float, required=True)
    p_prio.add_argument("--top", type=int, default=settings.priority.top_alerts_default_limit)
    p_prio.add_argument("--chart", type=Path, default=None, help="Write an HTML bar chart here.")

    p_top = sub.add_parser("top-alerts", help="Show the highest stored priorities.")
    p_top.add_argument("--limit", type=int, default=settings.priority.top_alerts_default_limit)

    p_fc = sub.add_parser("forecast", help="Forecast one site/pathogen pair.")
    p_fc.add_argument("--site", required=True)
    p_fc.add_argument("--pathogen", required=True)
    p_fc.add_argument("--save", action="store_true", help="Persist the predictions.")
    p_fc.add_argument("--chart", type=Path, default=None, help="Write an HTML forecast chart here.")

    p_an = sub.add_parser("anomalies", help="Sweep all active pairs for anomalies.")
    p_an.add_argument("--workers", type=int, default=settings.anomaly.sweep_max_workers)
    p_an.add_argument("--save", action="store_true", help="Persist the generated alerts.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    store = CsvDataStore(args.data_dir)

    if args.command == "priorities":
        priorities = calculate_alert_priorities(store, args.lat, args.lon)
        print(priorities.head(args.top).to_string(index=False) if not priorities.empty else "No priorities.")
        if args.chart:
            plot_alert_priorities(priorities, top_n=args.top).write_html(args.chart)
            logger.info(f"Priority chart written to {args.chart}.")

    elif args.command == "top-alerts":
        top = get_top_alerts(store, args.limit)
        print(top.to_string(index=False) if not top.empty else "No stored priorities.")

    elif args.command == "forecast":
        engine = ForecastEngine(store)
        predictions = engine.generate_predictions(args.site, args.pathogen)
        if predictions.empty:
            print("Not enough history to forecast this pair.")
            return 0
        print(predictions.drop(columns=['factors_used']).to_string(index=False))
        if args.save:
            engine.save_predictions(predictions)
        if args.chart:
            history = engine.fetch_history(args.site, args.pathogen)
            plot_pathogen_forecast(history, predictions).write_html(args.chart)
            logger.info(f"Forecast chart written to {args.chart}.")

    elif args.command == "anomalies":
        alerts = generate_anomaly_alerts(store, max_workers=args.workers)
        print(alerts[['site_name', 'pathogen_name', 'message']].to_string(index=False)
              if not alerts.empty else "No anomalies detected.")
        if args.save:
            save_anomaly_alerts(store, alerts)

    return 0


if __name__ == "__main__":
    sys.exit(main())
