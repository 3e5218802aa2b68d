# wastewatch_root/visualization/__init__.py
#
# Visualization Package API

"""
Themed Plotly charts for forecasts and alert priorities.
"""

from .plots import (
    create_empty_figure,
    plot_pathogen_forecast,
    plot_alert_priorities,
)
from .themes import surveillance_theme_template


__all__ = [
    "create_empty_figure",
    "plot_pathogen_forecast",
    "plot_alert_priorities",
    "surveillance_theme_template",
]
