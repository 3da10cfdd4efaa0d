"""
Tabular record model for the accident extracts.

Every table the pipeline writes is declared here as an ordered list of
columns. Bulk loads bind values by this list, never by inspecting rows.
"""

import csv
import io
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

TEXT = "TEXT"
REAL = "REAL"
INTEGER = "INTEGER"


class Column(NamedTuple):
    name: str
    header: Optional[str]
    sql_type: str


# Column order matches the source extracts
ACCIDENT_COLUMNS: Tuple[Column, ...] = (
    Column("accident_index", "Accident_Index", TEXT),
    Column("location_easting_osgr", "Location_Easting_OSGR", REAL),
    Column("location_northing_osgr", "Location_Northing_OSGR", REAL),
    Column("longitude", "Longitude", REAL),
    Column("latitude", "Latitude", REAL),
    Column("police_force", "Police_Force", INTEGER),
    Column("accident_severity", "Accident_Severity", INTEGER),
    Column("number_of_vehicles", "Number_of_Vehicles", INTEGER),
    Column("number_of_casualties", "Number_of_Casualties", INTEGER),
    Column("date", "Date", TEXT),
    Column("day_of_week", "Day_of_Week", INTEGER),
    Column("time", "Time", TEXT),
    Column("local_authority_district", "Local_Authority_(District)", INTEGER),
    Column("local_authority_highway", "Local_Authority_(Highway)", TEXT),
    Column("first_road_class", "1st_Road_Class", INTEGER),
    Column("first_road_number", "1st_Road_Number", INTEGER),
    Column("road_type", "Road_Type", INTEGER),
    Column("speed_limit", "Speed_Limit", INTEGER),
    Column("junction_detail", "Junction_Detail", INTEGER),
    Column("junction_control", "Junction_Control", INTEGER),
    Column("second_road_class", "2nd_Road_Class", INTEGER),
    Column("second_road_number", "2nd_Road_Number", INTEGER),
    Column("pedestrian_crossing_human_control", "Pedestrian_Crossing-Human_Control", INTEGER),
    Column("pedestrian_crossing_physical_facilities", "Pedestrian_Crossing-Physical_Facilities", INTEGER),
    Column("light_conditions", "Light_Conditions", INTEGER),
    Column("weather_conditions", "Weather_Conditions", INTEGER),
    Column("road_surface_conditions", "Road_Surface_Conditions", INTEGER),
    Column("special_conditions_at_site", "Special_Conditions_at_Site", INTEGER),
    Column("carriageway_hazards", "Carriageway_Hazards", INTEGER),
    Column("urban_or_rural_area", "Urban_or_Rural_Area", INTEGER),
    Column("did_police_officer_attend_scene_of_accident", "Did_Police_Officer_Attend_Scene_of_Accident", INTEGER),
    Column("lsoa_of_accident_location", "LSOA_of_Accident_Location", TEXT),
)

# Derived during cleaning; stored as 0/1
SILVER_FLAG_COLUMNS: Tuple[Column, ...] = (
    Column("location_data_missing", None, INTEGER),
    Column("lsoa_missing", None, INTEGER),
)

SILVER_COLUMNS = ACCIDENT_COLUMNS + SILVER_FLAG_COLUMNS
SILVER_TABLE = "accident_clean"

SPATIAL_COLUMNS = (
    "location_easting_osgr",
    "location_northing_osgr",
    "longitude",
    "latitude",
)

# Source headers and snake_case names both resolve to a column
_HEADER_LOOKUP: Dict[str, Column] = {}
for _column in ACCIDENT_COLUMNS:
    _HEADER_LOOKUP[_column.header.lower()] = _column
    _HEADER_LOOKUP[_column.name] = _column


def column_names(columns: Sequence[Column]) -> List[str]:
    return [column.name for column in columns]


def create_table_sql(table_name: str, columns: Sequence[Column], if_not_exists: bool = True) -> str:
    """Render a CREATE TABLE statement for the given column list."""
    body = ",\n    ".join(f"{column.name} {column.sql_type}" for column in columns)
    guard = "IF NOT EXISTS " if if_not_exists else ""
    return f"CREATE TABLE {guard}{table_name} (\n    {body}\n)"


def insert_sql(table_name: str, columns: Sequence[Column]) -> str:
    names = ", ".join(column_names(columns))
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {table_name} ({names}) VALUES ({placeholders})"


def convert_value(value: Optional[str], sql_type: str):
    """
    Convert one CSV cell to the column's semantic type.

    Blank cells become None. Raises ValueError when a numeric cell cannot be
    read as a number.
    """
    if value is None:
        return None
    value = value.strip()
    if value == "":
        return None
    if sql_type == REAL:
        return float(value)
    if sql_type == INTEGER:
        try:
            return int(value)
        except ValueError:
            number = float(value)
            if not number.is_integer():
                raise ValueError(f"invalid integer value {value!r}")
            return int(number)
    return value


def resolve_column(header: Optional[str]) -> Optional[Column]:
    if header is None:
        return None
    return _HEADER_LOOKUP.get(header.strip().lstrip("\ufeff").lower())


def parse_row(raw: Dict[Optional[str], Optional[str]]) -> Dict[str, object]:
    """
    Map one CSV row (header -> text) onto the accident columns.

    Unknown headers are ignored and missing ones yield None.

    Raises:
        ValueError: naming the offending column when a cell fails conversion
    """
    record = {column.name: None for column in ACCIDENT_COLUMNS}
    for header, value in raw.items():
        column = resolve_column(header)
        if column is None:
            continue
        try:
            record[column.name] = convert_value(value, column.sql_type)
        except ValueError as e:
            raise ValueError(f"column {column.header}: {e}")
    return record


def record_values(record: Dict[str, object], columns: Sequence[Column]) -> tuple:
    return tuple(record.get(column.name) for column in columns)


def parse_csv(text: str, source_name: str) -> Tuple[List[Dict[str, object]], List[str]]:
    """
    Parse CSV text into accident records.

    Malformed rows are skipped individually; each one produces a diagnostic
    message instead of failing the whole file.

    Args:
        text: Full CSV content including the header row
        source_name: Name of the file, used in diagnostics

    Returns:
        Tuple of (parsed records, diagnostic messages)
    """
    records: List[Dict[str, object]] = []
    errors: List[str] = []
    reader = csv.DictReader(io.StringIO(text), delimiter=",")

    while True:
        try:
            raw = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            errors.append(f"Bad data at row {reader.line_num} in {source_name}: {e}")
            continue

        try:
            records.append(parse_row(raw))
        except ValueError as e:
            errors.append(f"Error parsing row {reader.line_num} in {source_name}: {e}")

    return records, errors
