import json

import pandas as pd
import pytest

import run_analytics


@pytest.fixture
def data_dir(tmp_path):
    (tmp_path / "sampling_sites.csv").write_text(
        "id,name,latitude,longitude,population,active\n"
        "site-1,Austin Walnut Creek,30.2672,-97.7431,2000000,true\n"
    )
    (tmp_path / "pathogens.json").write_text(json.dumps([
        {"id": "covid", "name": "COVID-19", "severity_level": "high", "color_code": "#D32F2F"},
    ]))
    today = pd.Timestamp.now().normalize()
    rows = ["site_id,pathogen_id,concentration_level,trend,sample_date,confidence_score"]
    for offset in range(14, 0, -1):
        level = 100 if offset <= 3 else 50
        day = (today - pd.Timedelta(days=offset)).date().isoformat()
        rows.append(f"site-1,covid,{level},increasing,{day},0.8")
    (tmp_path / "wastewater_readings.csv").write_text("\n".join(rows) + "\n")
    return tmp_path


def test_priorities_command_persists_ranking(data_dir, capsys):
    assert run_analytics.main(["--data-dir", str(data_dir), "priorities", "--lat", "30.2672", "--lon", "-97.7431"]) == 0
    assert "site-1" in capsys.readouterr().out
    assert (data_dir / "alert_priorities.csv").exists()


def test_top_alerts_after_priorities(data_dir, capsys):
    run_analytics.main(["--data-dir", str(data_dir), "priorities", "--lat", "30.2672", "--lon", "-97.7431"])
    capsys.readouterr()
    run_analytics.main(["--data-dir", str(data_dir), "top-alerts", "--limit", "1"])
    assert "Austin Walnut Creek" in capsys.readouterr().out


def test_forecast_command_saves_predictions_and_chart(data_dir, tmp_path):
    chart = tmp_path / "forecast.html"
    args = ["--data-dir", str(data_dir), "forecast", "--site", "site-1", "--pathogen", "covid",
            "--save", "--chart", str(chart)]
    assert run_analytics.main(args) == 0
    assert len(pd.read_csv(data_dir / "predictions.csv")) == 14
    assert chart.exists()


def test_anomalies_command_flags_spike(data_dir, capsys):
    assert run_analytics.main(["--data-dir", str(data_dir), "anomalies", "--save"]) == 0
    assert "unusual spike at Austin Walnut Creek" in capsys.readouterr().out
    assert len(pd.read_csv(data_dir / "alerts.csv")) == 1
