import logging
import sqlite3
from typing import Dict, Iterable, Sequence

from accident_pipeline.config import DEFAULT_OPERATION_TIMEOUT
from accident_pipeline.schema import Column, create_table_sql, insert_sql, record_values

logger = logging.getLogger("Database")


def connect(database: str, timeout: int = DEFAULT_OPERATION_TIMEOUT) -> sqlite3.Connection:
    """
    Open a connection to the relational store.

    Args:
        database: Path to the SQLite database file, or a ``file:`` URI
        timeout: Seconds to wait on a locked database before failing

    Returns:
        SQLite connection object
    """
    return sqlite3.connect(database, timeout=timeout, uri=database.startswith("file:"))


def recreate_table(conn: sqlite3.Connection, table_name: str, columns: Sequence[Column]) -> None:
    """Drop the table if it exists and create it again from the column list."""
    conn.execute(f"DROP TABLE IF EXISTS {table_name}")
    conn.execute(create_table_sql(table_name, columns, if_not_exists=False))
    logger.info(f"Dropped (if exists) and created table: {table_name}")


def insert_records(
    conn: sqlite3.Connection,
    table_name: str,
    columns: Sequence[Column],
    records: Iterable[Dict[str, object]],
) -> int:
    """
    Bulk insert records, binding values in declared column order.

    The caller owns the transaction and commits or rolls back.

    Returns:
        Number of rows inserted
    """
    rows = [record_values(record, columns) for record in records]
    if rows:
        conn.executemany(insert_sql(table_name, columns), rows)
    return len(rows)
