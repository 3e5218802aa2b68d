import pandas as pd

from analytics.forecasting import generate_predictions
from visualization.plots import create_empty_figure, plot_alert_priorities, plot_pathogen_forecast

from conftest import FIXED_NOW, ZeroJitterRng, make_history


def _priorities(n):
    return pd.DataFrame({
        'site_id': [f"site-{i}" for i in range(n)],
        'pathogen_id': 'covid',
        'priority_score': [float(20 - i) for i in range(n)],
        'site_name': [f"Plant {i}" for i in range(n)],
        'pathogen_name': 'COVID-19',
    })


def test_empty_figure_has_message():
    fig = create_empty_figure("Nothing here")
    assert fig.layout.annotations[0].text == "Not enough data to display."


def test_forecast_has_observed_and_forecast_traces():
    history = make_history([40.0] * 10)
    predictions = generate_predictions(history, "site-1", "covid", FIXED_NOW.date(), rng=ZeroJitterRng())
    fig = plot_pathogen_forecast(history, predictions)
    assert [trace.name for trace in fig.data] == ['Observed', 'Forecast']
    assert len(fig.data[1].x) == 14


def test_forecast_without_data_is_empty_figure():
    fig = plot_pathogen_forecast(pd.DataFrame(), pd.DataFrame())
    assert len(fig.data) == 0
    assert fig.layout.annotations


def test_priority_chart_limits_bars():
    fig = plot_alert_priorities(_priorities(15), top_n=5)
    bars = fig.data[0]
    assert len(bars.x) == 5
    # highest score drawn at the top of a horizontal bar chart
    assert bars.y[-1] == "COVID-19 @ Plant 0"


def test_empty_figure_escapes_title():
    fig = create_empty_figure("<script>x</script>")
    assert "<script>" not in fig.layout.title.text
    assert "&lt;script&gt;" in fig.layout.title.text
