# wastewatch_root/visualization/plots.py
#
# Surveillance Chart Factory
# Plotly figures for pathogen concentration forecasts and the ranked alert
# priority list.

import html
import logging

import pandas as pd
import plotly.graph_objects as go

try:
    from config.settings import settings
    from .themes import surveillance_theme_template
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in plots.py: A core dependency is missing. {e}", exc_info=True)
    raise

logger = logging.getLogger(__name__)


class SurveillanceChartFactory:
    """Creates themed charts from analytics output frames."""

    def __init__(self, theme_template: go.layout.Template):
        self.theme = theme_template

    def create_empty_figure(self, title: str) -> go.Figure:
        """A themed, blank figure with a 'no data' message."""
        fig = go.Figure()
        fig.update_layout(template=self.theme, title_text=f"<b>{html.escape(title)}</b>",
                          xaxis={'visible': False}, yaxis={'visible': False})
        fig.add_annotation(text="Not enough data to display.", xref="paper", yref="paper",
                           x=0.5, y=0.5, showarrow=False, font_size=14)
        return fig

    def plot_pathogen_forecast(
        self,
        history: pd.DataFrame,
        predictions: pd.DataFrame,
        title: str = "Concentration Forecast",
    ) -> go.Figure:
        """
        Observed concentrations as a line and the 14-day forecast as a dashed
        line, with forecast markers colored by predicted category.
        """
        if (history is None or history.empty) and (predictions is None or predictions.empty):
            return self.create_empty_figure(title)

        fig = go.Figure()
        if history is not None and not history.empty:
            fig.add_trace(go.Scatter(
                x=pd.to_datetime(history['sample_date']), y=history['concentration_level'],
                mode='lines+markers', name='Observed',
                line=dict(color=settings.theme.primary, width=2),
            ))
        if predictions is not None and not predictions.empty:
            colors = predictions['predicted_category'].map(settings.theme.level_colors).fillna(settings.theme.text)
            fig.add_trace(go.Scatter(
                x=pd.to_datetime(predictions['prediction_date']), y=predictions['predicted_level'],
                mode='lines+markers', name='Forecast',
                line=dict(color=settings.theme.text, width=2, dash='dash'),
                marker=dict(color=list(colors), size=8),
                customdata=predictions[['confidence_score']].to_numpy(),
                hovertemplate="%{y:,.1f} (confidence %{customdata[0]:.0%})<extra></extra>",
            ))
        fig.update_layout(template=self.theme, title=f'<b>{html.escape(title)}</b>',
                          yaxis_title='Concentration level', xaxis_title=None)
        return fig

    def plot_alert_priorities(
        self,
        priorities: pd.DataFrame,
        top_n: int = 10,
        title: str = "Alert Priorities",
    ) -> go.Figure:
        """Horizontal bar chart of the highest composite priority scores."""
        if priorities is None or priorities.empty:
            return self.create_empty_figure(title)

        top = priorities.head(top_n).iloc[::-1]
        labels = top['pathogen_name'].astype(str) + " @ " + top['site_name'].astype(str)
        fig = go.Figure(go.Bar(
            x=top['priority_score'], y=labels, orientation='h',
            marker_color=settings.theme.risk_high, text=top['priority_score'],
            textposition='outside', cliponaxis=False,
        ))
        fig.update_layout(template=self.theme, title=f'<b>{html.escape(title)}</b>',
                          xaxis_title='Priority score', yaxis_title=None, hovermode='closest')
        return fig


# --- Singleton Instance and Public API ---
_chart_factory = SurveillanceChartFactory(surveillance_theme_template)

create_empty_figure = _chart_factory.create_empty_figure
plot_pathogen_forecast = _chart_factory.plot_pathogen_forecast
plot_alert_priorities = _chart_factory.plot_alert_priorities
