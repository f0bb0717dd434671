"""
Static column schema for the hourly input file and the daily dataset.
"""

import re

# Raw headers are matched after lowercasing and stripping unit annotations,
# so "Temperature(°C)" and a mis-decoded "Temperature(Â°C)" both map.
RAW_COLUMN_MAP = {
    "date": "date",
    "rented bike count": "bike_count",
    "hour": "hour",
    "temperature": "temperature",
    "humidity": "humidity",
    "wind speed": "wind_speed",
    "visibility": "visibility",
    "dew point temperature": "dew_point_temperature",
    "solar radiation": "solar_radiation",
    "rainfall": "rainfall",
    "snowfall": "snowfall",
    "seasons": "season",
    "holiday": "holiday",
    "functioning day": "functioning_day",
}

DATE_COLUMN = "date"
TARGET_COLUMN = "bike_count"
FUNCTIONING_COLUMN = "functioning_day"
DATE_FORMAT = "%d/%m/%Y"

SEASONS = ["Spring", "Summer", "Autumn", "Winter"]
HOLIDAY_LEVELS = ["Holiday", "No Holiday"]

CATEGORICAL_COLUMNS = ["season", "holiday"]
GROUP_COLUMNS = [DATE_COLUMN, "season", "holiday"]

SUMMED_COLUMNS = ["bike_count", "rainfall", "snowfall"]
AVERAGED_COLUMNS = [
    "temperature",
    "humidity",
    "wind_speed",
    "visibility",
    "dew_point_temperature",
    "solar_radiation",
]

# Predictors standardised by the feature transformer (target excluded)
NUMERIC_PREDICTORS = AVERAGED_COLUMNS + ["rainfall", "snowfall"]

HOURLY_NUMERIC_COLUMNS = ["hour"] + SUMMED_COLUMNS + AVERAGED_COLUMNS
REQUIRED_RAW_COLUMNS = list(RAW_COLUMN_MAP.values())
DAILY_COLUMNS = GROUP_COLUMNS + SUMMED_COLUMNS + AVERAGED_COLUMNS


def normalise_header(name: str) -> str:
    """Lowercase a raw header and drop unit annotations and symbols."""
    name = re.sub(r"\(.*?\)", " ", str(name)).lower()
    name = re.sub(r"[^a-z ]", " ", name)
    return " ".join(name.split())
