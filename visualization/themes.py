# wastewatch_root/visualization/themes.py
#
# Centralized Plotting Theme
# One Plotly template shared by every surveillance chart.

import logging

import plotly.graph_objects as go

try:
    from config.settings import settings
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in themes.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)

surveillance_theme_template = go.layout.Template(
    layout=go.Layout(
        font=dict(family="sans-serif", size=12, color=settings.theme.text),
        title=dict(font=dict(size=18, family="sans-serif"), x=0.05, xanchor='left'),
        paper_bgcolor=settings.theme.background,
        plot_bgcolor=settings.theme.background,
        colorway=[settings.theme.primary, settings.theme.risk_high,
                  settings.theme.risk_moderate, settings.theme.risk_low],
        xaxis=dict(showgrid=False, showline=True, linecolor=settings.theme.text,
                   zeroline=False, ticks='outside', title_standoff=10),
        yaxis=dict(showgrid=True, gridcolor='#EAEAEA', showline=False,
                   zeroline=False, ticks='outside', title_standoff=10, rangemode='tozero'),
        legend=dict(orientation='h', yanchor='bottom', y=1.02, xanchor='right', x=1),
        margin=dict(l=70, r=30, t=80, b=70),
        hoverlabel=dict(bgcolor="#FFFFFF", font_size=12, font_family="sans-serif"),
        hovermode='x unified',
    )
)

logger.debug("Surveillance Plotly theme template created.")
