#!/usr/bin/env python
"""
Script to download the UCI Seoul Bike Sharing Demand dataset and check it loads.
"""

import sys
from pathlib import Path

import requests

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bike_demand.data_pipeline.ingestion import load_daily_dataset

# URL for the dataset
DATASET_URL = "https://archive.ics.uci.edu/ml/machine-learning-databases/00560/SeoulBikeData.csv"
OUTPUT_DIR = Path("data/raw")


def download_and_check():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    output_file = OUTPUT_DIR / "SeoulBikeData.csv"

    # 1. Download
    print(f"Downloading dataset from {DATASET_URL}...")
    response = requests.get(DATASET_URL, timeout=60)
    response.raise_for_status()

    # 2. Save the bytes untouched: the file is latin-1 encoded
    output_file.write_bytes(response.content)
    print(f"Saved to {output_file}")

    # 3. Load through the pipeline to confirm the schema
    daily = load_daily_dataset(output_file)
    print(f"Daily rows: {len(daily)}")
    print(f"Date range: {daily['date'].min():%Y-%m-%d} to {daily['date'].max():%Y-%m-%d}")

    return output_file


if __name__ == "__main__":
    download_and_check()
