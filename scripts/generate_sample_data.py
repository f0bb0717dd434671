#!/usr/bin/env python
"""
Generate a synthetic hourly bike rental file in the published raw format.
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bike_demand.data_pipeline.schema import DATE_FORMAT

RAW_HEADERS = [
    "Date",
    "Rented Bike Count",
    "Hour",
    "Temperature(°C)",
    "Humidity(%)",
    "Wind speed (m/s)",
    "Visibility (10m)",
    "Dew point temperature(°C)",
    "Solar Radiation (MJ/m2)",
    "Rainfall(mm)",
    "Snowfall (cm)",
    "Seasons",
    "Holiday",
    "Functioning Day",
]


def season_of(month: int) -> str:
    if month in (12, 1, 2):
        return "Winter"
    if month in (3, 4, 5):
        return "Spring"
    if month in (6, 7, 8):
        return "Summer"
    return "Autumn"


def generate_sample_data(
    start_date: datetime,
    end_date: datetime,
    output_path: Path,
    seed: int = 123,
    holiday_rate: float = 0.05,
    closed_rate: float = 0.03,
) -> pd.DataFrame:
    """
    Generate synthetic hourly rentals.

    Includes patterns for:
    - Commute peaks on weekdays
    - Temperature-driven yearly cycle
    - Fewer rentals in rain and snow
    - Whole days with the system not operating
    """
    rng = np.random.default_rng(seed)
    timestamps = pd.date_range(start=start_date, end=end_date, freq="h")
    n = len(timestamps)

    days = timestamps.normalize()
    unique_days = days.unique()
    holidays = set(unique_days[rng.random(len(unique_days)) < holiday_rate])
    closed = set(unique_days[rng.random(len(unique_days)) < closed_rate])

    day_of_year = timestamps.dayofyear.to_numpy()
    hours = timestamps.hour.to_numpy()

    temperature = 12 - 14 * np.cos(2 * np.pi * (day_of_year - 15) / 365)
    temperature += 4 * np.sin(2 * np.pi * (hours - 9) / 24) + rng.normal(0, 2, n)
    humidity = np.clip(rng.normal(58, 18, n), 0, 98)
    wind_speed = np.clip(rng.gamma(2.0, 0.9, n), 0, 7.4)
    visibility = np.clip(rng.normal(1400, 550, n), 27, 2000).round()
    dew_point = temperature - (100 - humidity) / 5
    solar = np.clip(np.sin(np.pi * (hours - 6) / 14), 0, None) * rng.uniform(0.3, 3.0, n)
    rainfall = np.where(rng.random(n) < 0.06, rng.exponential(2.0, n), 0.0)
    snowfall = np.where((temperature < 0) & (rng.random(n) < 0.1), rng.exponential(1.0, n), 0.0)

    weekday = timestamps.dayofweek.to_numpy() < 5
    commute = np.where(weekday & np.isin(hours, [8, 18]), 2.0, 1.0)
    daytime = 0.3 + np.clip(np.sin(np.pi * (hours - 5) / 18), 0, None)
    demand = 900 * daytime * commute * np.clip(1 + temperature / 25, 0.1, None)
    demand *= np.where(rainfall > 0, 0.2, 1.0) * np.where(snowfall > 0, 0.5, 1.0)
    count = rng.poisson(np.clip(demand, 0, None))

    is_closed = np.array([d in closed for d in days])
    count = np.where(is_closed, 0, count)

    df = pd.DataFrame({
        "Date": days.strftime(DATE_FORMAT),
        "Rented Bike Count": count,
        "Hour": hours,
        "Temperature(°C)": temperature.round(1),
        "Humidity(%)": humidity.round(),
        "Wind speed (m/s)": wind_speed.round(1),
        "Visibility (10m)": visibility,
        "Dew point temperature(°C)": dew_point.round(1),
        "Solar Radiation (MJ/m2)": solar.round(2),
        "Rainfall(mm)": rainfall.round(1),
        "Snowfall (cm)": snowfall.round(1),
        "Seasons": [season_of(m) for m in timestamps.month],
        "Holiday": ["Holiday" if d in holidays else "No Holiday" for d in days],
        "Functioning Day": np.where(is_closed, "No", "Yes"),
    })[RAW_HEADERS]

    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False, encoding="latin-1")

    return df


def main():
    parser = argparse.ArgumentParser(description="Generate sample hourly rental data")
    parser.add_argument(
        "--start",
        type=str,
        default="2017-12-01",
        help="Start date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--end",
        type=str,
        default="2018-11-30 23:00",
        help="End date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="data/raw/SeoulBikeData.csv",
        help="Output file path",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=123,
        help="Random seed",
    )

    args = parser.parse_args()

    df = generate_sample_data(
        start_date=pd.Timestamp(args.start).to_pydatetime(),
        end_date=pd.Timestamp(args.end).to_pydatetime(),
        output_path=Path(args.output),
        seed=args.seed,
    )

    print(f"Generated {len(df)} hourly records")
    print(f"Saved to: {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
