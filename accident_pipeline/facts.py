"""
Fact table rebuild for the gold layer.

The fact table is derived data: every run empties it and repopulates it from
the silver table joined to the active version of each dimension.
"""

import logging
import sqlite3
from typing import Sequence

from accident_pipeline.dimensions import ACTIVE, DIMENSIONS, Dimension
from accident_pipeline.schema import SILVER_TABLE

logger = logging.getLogger("GoldLayer")

FACT_TABLE = "fact_accidents"

# Silver columns copied onto each fact row after the dimension keys
FACT_MEASURES = (
    ("longitude", "REAL"),
    ("latitude", "REAL"),
    ("local_authority_district", "INTEGER"),
    ("local_authority_highway", "TEXT"),
    ("date", "TEXT"),
    ("time", "TEXT"),
    ("number_of_vehicles", "INTEGER"),
    ("number_of_casualties", "INTEGER"),
    ("speed_limit", "INTEGER"),
)


def fact_columns(dimensions: Sequence[Dimension] = DIMENSIONS) -> list:
    return (
        ["accident_index"]
        + [dimension.key_column for dimension in dimensions]
        + [name for name, _ in FACT_MEASURES]
    )


def create_fact_table(
    conn: sqlite3.Connection,
    fact_table: str = FACT_TABLE,
    dimensions: Sequence[Dimension] = DIMENSIONS,
) -> None:
    """
    Create the fact table if it doesn't already exist.
    """
    definitions = ["accident_index TEXT"]
    definitions += [
        f"{dimension.key_column} INTEGER REFERENCES {dimension.table}({dimension.key_column})"
        for dimension in dimensions
    ]
    definitions += [f"{name} {sql_type}" for name, sql_type in FACT_MEASURES]
    body = ",\n            ".join(definitions)
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {fact_table} (
            {body}
        )
    """)


def build_fact_insert_sql(
    source_table: str = SILVER_TABLE,
    fact_table: str = FACT_TABLE,
    dimensions: Sequence[Dimension] = DIMENSIONS,
) -> str:
    """
    Render the INSERT ... SELECT that joins the source to every active dimension.

    Inner joins drop any source row without an active match on one of the
    attributes.
    """
    select_list = ["a.accident_index"]
    joins = []
    for position, dimension in enumerate(dimensions):
        alias = f"d{position}"
        select_list.append(f"{alias}.{dimension.key_column}")
        joins.append(
            f"INNER JOIN {dimension.table} {alias} "
            f"ON a.{dimension.attribute} = {alias}.{dimension.attribute} "
            f"AND {alias}.status = {ACTIVE}"
        )
    select_list += [f"a.{name}" for name, _ in FACT_MEASURES]

    return (
        f"INSERT INTO {fact_table} ({', '.join(fact_columns(dimensions))})\n"
        f"SELECT {', '.join(select_list)}\n"
        f"FROM {source_table} a\n"
        + "\n".join(joins)
    )


def rebuild_fact_table(
    conn: sqlite3.Connection,
    source_table: str = SILVER_TABLE,
    fact_table: str = FACT_TABLE,
    dimensions: Sequence[Dimension] = DIMENSIONS,
) -> int:
    """
    Replace the fact table content with a fresh snapshot.

    The delete and the insert run in one transaction: readers see either the
    previous content or the new content. Any error rolls back and propagates.

    Returns:
        Number of fact rows inserted
    """
    create_fact_table(conn, fact_table, dimensions)
    insert_query = build_fact_insert_sql(source_table, fact_table, dimensions)

    try:
        logger.info(f"Truncating table {fact_table}")
        conn.execute(f"DELETE FROM {fact_table}")

        logger.info(f"Inserting data into {fact_table}")
        rows_affected = conn.execute(insert_query).rowcount
        conn.commit()
    except Exception:
        conn.rollback()
        raise

    logger.info(f"Inserted {rows_affected} rows into {fact_table}")
    return rows_affected
