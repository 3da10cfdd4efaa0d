import os
from datetime import date, timedelta
from typing import Optional

import numpy as np
import pandas as pd

from accident_pipeline.schema import ACCIDENT_COLUMNS


def generate_accident_data(num_records: int = 1000, year: int = 2015, seed: Optional[int] = None):
    """
    Generate synthetic rows shaped like a yearly accident extract.

    Rows are keyed by the source headers. Roughly one row in fifty has no
    location at all and one in ten lacks an LSOA code.
    """
    rng = np.random.default_rng(seed)
    start = date(year, 1, 1)
    records = []
    for i in range(num_records):
        day = start + timedelta(days=int(rng.integers(0, 365)))
        located = rng.random() >= 0.02
        longitude = round(float(rng.uniform(-5.5, 1.7)), 6) if located else None
        latitude = round(float(rng.uniform(50.0, 55.8)), 6) if located else None
        record = {
            "Accident_Index": f"{year}{i:08d}",
            "Location_Easting_OSGR": int(rng.integers(100000, 650000)) if located else None,
            "Location_Northing_OSGR": int(rng.integers(10000, 1200000)) if located else None,
            "Longitude": longitude,
            "Latitude": latitude,
            "Police_Force": int(rng.integers(1, 64)),
            "Accident_Severity": int(rng.choice([1, 2, 3], p=[0.02, 0.15, 0.83])),
            "Number_of_Vehicles": int(rng.integers(1, 5)),
            "Number_of_Casualties": int(rng.integers(1, 4)),
            "Date": day.strftime("%d/%m/%Y"),
            "Day_of_Week": day.isoweekday() % 7 + 1,
            "Time": f"{int(rng.integers(0, 24)):02d}:{int(rng.integers(0, 60)):02d}",
            "Local_Authority_(District)": int(rng.integers(1, 942)),
            "Local_Authority_(Highway)": f"E{int(rng.integers(6000001, 6000200)):08d}",
            "1st_Road_Class": int(rng.integers(1, 7)),
            "1st_Road_Number": int(rng.integers(0, 9999)),
            "Road_Type": int(rng.choice([1, 2, 3, 6, 7, 9])),
            "Speed_Limit": int(rng.choice([20, 30, 40, 50, 60, 70])),
            "Junction_Detail": int(rng.integers(0, 10)),
            "Junction_Control": int(rng.choice([-1, 1, 2, 3, 4])),
            "2nd_Road_Class": int(rng.choice([-1, 1, 2, 3, 4, 5, 6])),
            "2nd_Road_Number": int(rng.integers(0, 9999)),
            "Pedestrian_Crossing-Human_Control": int(rng.choice([0, 1, 2])),
            "Pedestrian_Crossing-Physical_Facilities": int(rng.choice([0, 1, 4, 5, 7, 8])),
            "Light_Conditions": int(rng.choice([1, 4, 5, 6, 7])),
            "Weather_Conditions": int(rng.choice([1, 2, 3, 4, 5, 6, 7, 8, 9])),
            "Road_Surface_Conditions": int(rng.choice([1, 2, 3, 4, 5])),
            "Special_Conditions_at_Site": int(rng.integers(0, 8)),
            "Carriageway_Hazards": int(rng.integers(0, 8)),
            "Urban_or_Rural_Area": int(rng.choice([1, 2])),
            "Did_Police_Officer_Attend_Scene_of_Accident": int(rng.choice([1, 2])),
            "LSOA_of_Accident_Location": f"E0{int(rng.integers(1000000, 1035000))}" if rng.random() >= 0.1 else None,
        }
        records.append(record)
    return records


def accident_frame(records) -> pd.DataFrame:
    headers = [column.header for column in ACCIDENT_COLUMNS]
    return pd.DataFrame(records, columns=headers)


def accident_csv(num_records: int = 1000, year: int = 2015, seed: Optional[int] = None) -> str:
    """Render a synthetic extract as CSV text with the source headers."""
    return accident_frame(generate_accident_data(num_records, year, seed)).to_csv(index=False)


if __name__ == "__main__":
    BASE_DIR = os.path.abspath(os.getcwd())
    output_dir = os.path.join(BASE_DIR, "data", "sample")
    os.makedirs(output_dir, exist_ok=True)
    output_file = os.path.join(output_dir, "accidents_2015.csv")
    accident_frame(generate_accident_data(1000, seed=2015)).to_csv(output_file, index=False)
    print(f"Generated CSV file at: {output_file}")
