"""
Shared fixtures: synthetic daily datasets and raw hourly files.
"""

import numpy as np
import pandas as pd
import pytest

from bike_demand.data_pipeline.schema import HOLIDAY_LEVELS, SEASONS


def season_of(month: int) -> str:
    if month in (12, 1, 2):
        return "Winter"
    if month in (3, 4, 5):
        return "Spring"
    if month in (6, 7, 8):
        return "Summer"
    return "Autumn"


def make_daily_data(
    n_days: int = 120,
    step_days: int = 3,
    seed: int = 0,
    start: str = "2018-01-01",
) -> pd.DataFrame:
    """Daily dataset in the cleaned schema, every season represented."""
    rng = np.random.default_rng(seed)
    dates = pd.date_range(start, periods=n_days, freq=f"{step_days}D")

    temperature = rng.uniform(-10, 30, n_days)
    humidity = rng.uniform(20, 90, n_days)
    rainfall = np.where(rng.random(n_days) < 0.2, rng.exponential(8.0, n_days), 0.0)
    snowfall = np.where(temperature < 0, rng.exponential(2.0, n_days), 0.0)
    count = 20000 + 600 * temperature - 80 * humidity - 400 * rainfall
    count += rng.normal(0, 1500, n_days)

    holiday = np.where(np.arange(n_days) % 10 == 0, "Holiday", "No Holiday")

    return pd.DataFrame({
        "date": dates,
        "season": pd.Categorical([season_of(m) for m in dates.month], categories=SEASONS),
        "holiday": pd.Categorical(holiday, categories=HOLIDAY_LEVELS),
        "bike_count": np.clip(count, 0, None).round().astype(int),
        "rainfall": rainfall,
        "snowfall": snowfall,
        "temperature": temperature,
        "humidity": humidity,
        "wind_speed": rng.uniform(0.5, 4.0, n_days),
        "visibility": rng.uniform(300, 2000, n_days),
        "dew_point_temperature": temperature - rng.uniform(2, 15, n_days),
        "solar_radiation": rng.uniform(0, 1.5, n_days),
    })


def make_hourly_raw(days: list[str], functioning: dict = None) -> pd.DataFrame:
    """
    Raw hourly frame with the published headers.

    ``functioning`` maps a day string to the hours that are not operating.
    """
    functioning = functioning or {}
    rows = []
    for day_number, day in enumerate(days):
        closed_hours = functioning.get(day, [])
        for hour in range(24):
            rows.append({
                "Date": day,
                "Rented Bike Count": 10 * hour + day_number,
                "Hour": hour,
                "Temperature(°C)": float(hour),
                "Humidity(%)": 50,
                "Wind speed (m/s)": 1.5,
                "Visibility (10m)": 2000,
                "Dew point temperature(°C)": -5.0,
                "Solar Radiation (MJ/m2)": 0.5 if 8 <= hour <= 17 else 0.0,
                "Rainfall(mm)": 0.5 if hour < 4 else 0.0,
                "Snowfall (cm)": 0.0,
                "Seasons": "Winter",
                "Holiday": "No Holiday",
                "Functioning Day": "No" if hour in closed_hours else "Yes",
            })
    return pd.DataFrame(rows)


@pytest.fixture
def daily_data():
    """120 days spread over one year."""
    return make_daily_data()


@pytest.fixture
def hourly_csv(tmp_path):
    """Raw file for three days; the second is closed, the third partly closed."""
    days = ["01/12/2017", "02/12/2017", "03/12/2017"]
    df = make_hourly_raw(
        days,
        functioning={"02/12/2017": list(range(24)), "03/12/2017": list(range(6))},
    )
    path = tmp_path / "SeoulBikeData.csv"
    df.to_csv(path, index=False, encoding="latin-1")
    return path
