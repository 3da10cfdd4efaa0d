"""
SCD Type 2 dimension refresh for the gold layer.

Each tracked attribute of the silver table has one dimension table. A refresh
collects the distinct codes present in silver and, for every (code,
description) pair not already stored as the active row, supersedes the old
active row for that code and inserts a new active version. Rows are never
deleted, so the full history of each code stays queryable.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import List, Mapping, Optional, Tuple

import pandas as pd

from accident_pipeline.schema import SILVER_TABLE

logger = logging.getLogger("GoldLayer")

ACTIVE = 1
SUPERSEDED = 0
UNKNOWN_DESCRIPTION = "Unknown"

LIGHT_CONDITIONS = {
    1: "Daylights",
    4: "Darkness with street lighting",
    5: "Darkness without street lighting",
    6: "Darkness with no lighting",
    7: "Darkness with unknown lighting status",
}

WEATHER_CONDITIONS = {
    1: "Fine (no high winds)",
    2: "Fine with high winds",
    3: "Rain (no high winds)",
    4: "Rain with high winds",
    5: "Snow (no high winds)",
    6: "Snow with high winds",
    7: "Fog/mist",
    8: "Other conditions",
    9: "Unspecified",
    -1: "Not recorded",
}

URBAN_OR_RURAL_AREA = {
    1: "Urban",
    2: "Rural",
}

ROAD_TYPES = {
    1: "Single carriageway",
    2: "Dual carriageway",
    3: "Other classified road types",
    6: "One-way street",
    7: "Special/other road types",
    9: "Unspecified/other",
}

ACCIDENT_SEVERITY = {
    1: "Fatal",
    2: "Serious",
    3: "Slight",
}

ROAD_SURFACE_CONDITIONS = {
    -1: "Not recorded",
    1: "Dry",
    2: "Wet/Damp",
    3: "Snow",
    4: "Ice",
    5: "Flooded",
}


@dataclass(frozen=True)
class Dimension:
    """One tracked attribute and the table that versions it."""

    attribute: str
    table: str
    descriptions: Optional[Mapping[int, str]] = None

    @property
    def key_column(self) -> str:
        return f"{self.attribute}_key"

    @property
    def has_description(self) -> bool:
        return self.descriptions is not None

    def describe(self, code: int) -> Optional[str]:
        if self.descriptions is None:
            return None
        return self.descriptions.get(code, UNKNOWN_DESCRIPTION)

    @property
    def columns(self) -> List[str]:
        columns = [self.attribute]
        if self.has_description:
            columns.append("description")
        return columns + ["start_date", "end_date", "status"]


DIMENSIONS: Tuple[Dimension, ...] = (
    Dimension("light_conditions", "dim_light_conditions", LIGHT_CONDITIONS),
    Dimension("weather_conditions", "dim_weather_conditions", WEATHER_CONDITIONS),
    Dimension("urban_or_rural_area", "dim_urban_or_rural_area", URBAN_OR_RURAL_AREA),
    Dimension("police_force", "dim_police_force"),
    Dimension("road_type", "dim_road_type", ROAD_TYPES),
    Dimension("accident_severity", "dim_accident_severity", ACCIDENT_SEVERITY),
    Dimension("road_surface_conditions", "dim_road_surface_conditions", ROAD_SURFACE_CONDITIONS),
)


def create_dimension_table(conn: sqlite3.Connection, dimension: Dimension) -> None:
    """
    Create the dimension table if it doesn't already exist.

    A partial unique index keeps at most one active row per code.
    """
    description = "description TEXT,\n            " if dimension.has_description else ""
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {dimension.table} (
            {dimension.key_column} INTEGER PRIMARY KEY AUTOINCREMENT,
            {dimension.attribute} INTEGER NOT NULL,
            {description}start_date TEXT NOT NULL,
            end_date TEXT,
            status INTEGER NOT NULL DEFAULT {ACTIVE}
        )
    """)
    conn.execute(f"""
        CREATE UNIQUE INDEX IF NOT EXISTS ux_{dimension.table}_active
        ON {dimension.table} ({dimension.attribute})
        WHERE status = {ACTIVE}
    """)


def distinct_values(conn: sqlite3.Connection, dimension: Dimension, source_table: str) -> List[Tuple[int, Optional[str]]]:
    """Distinct (code, description) pairs present in the source table; NULL codes are ignored."""
    frame = pd.read_sql(
        f"SELECT DISTINCT {dimension.attribute} AS code FROM {source_table} "
        f"WHERE {dimension.attribute} IS NOT NULL ORDER BY code",
        conn,
    )
    return [(int(code), dimension.describe(int(code))) for code in frame["code"]]


def _is_current(conn: sqlite3.Connection, dimension: Dimension, code: int, description: Optional[str]) -> bool:
    query = f"SELECT COUNT(1) FROM {dimension.table} WHERE {dimension.attribute} = ?"
    params: list = [code]
    if dimension.has_description:
        query += " AND description IS ?"
        params.append(description)
    query += f" AND status = {ACTIVE}"
    return conn.execute(query, params).fetchone()[0] > 0


def _supersede(conn: sqlite3.Connection, dimension: Dimension, code: int, run_date: str) -> int:
    cursor = conn.execute(
        f"UPDATE {dimension.table} SET end_date = ?, status = {SUPERSEDED} "
        f"WHERE {dimension.attribute} = ? AND status = {ACTIVE}",
        (run_date, code),
    )
    return cursor.rowcount


def refresh_dimension(
    conn: sqlite3.Connection,
    dimension: Dimension,
    source_table: str = SILVER_TABLE,
    run_date: Optional[date] = None,
) -> int:
    """
    Bring one dimension table up to date with the source table.

    Values are reconciled one at a time (check, supersede, stage); the staged
    rows are bulk-loaded after the loop and the whole attribute is committed
    as one transaction. On failure the attribute is rolled back and the error
    propagates.

    Args:
        conn: Open database connection
        dimension: Attribute descriptor
        source_table: Silver table holding the observed values
        run_date: Date stamped on new and superseded rows (default: today)

    Returns:
        Number of new dimension rows inserted
    """
    run_date_text = (run_date or date.today()).isoformat()
    logger.info(f"Processing {dimension.attribute} from {source_table} to {dimension.table}")

    create_dimension_table(conn, dimension)

    staged = []
    try:
        for code, description in distinct_values(conn, dimension, source_table):
            if _is_current(conn, dimension, code, description):
                continue

            superseded = _supersede(conn, dimension, code, run_date_text)
            if superseded:
                logger.info(f"Superseded {superseded} active row(s) for {dimension.attribute} = {code}")

            row = {dimension.attribute: code}
            if dimension.has_description:
                row["description"] = description
            row.update({"start_date": run_date_text, "end_date": None, "status": ACTIVE})
            staged.append(row)

        if staged:
            frame = pd.DataFrame(staged, columns=dimension.columns).astype(object)
            frame = frame.where(frame.notna(), None)
            frame.to_sql(dimension.table, conn, if_exists="append", index=False)
        conn.commit()
    except Exception:
        conn.rollback()
        raise

    logger.info(f"Inserted {len(staged)} records into {dimension.table}")
    return len(staged)


def refresh_all_dimensions(
    conn: sqlite3.Connection,
    dimensions: Tuple[Dimension, ...] = DIMENSIONS,
    source_table: str = SILVER_TABLE,
    run_date: Optional[date] = None,
) -> Tuple[int, List[str]]:
    """
    Refresh every tracked dimension.

    A failure on one attribute is logged and does not stop the others.

    Returns:
        Tuple of (total rows inserted, error messages in the order they occurred)
    """
    total = 0
    errors: List[str] = []
    for dimension in dimensions:
        try:
            total += refresh_dimension(conn, dimension, source_table, run_date)
        except Exception as e:
            message = f"Error processing {dimension.attribute}: {e}"
            logger.error(message)
            errors.append(message)
    return total, errors
