import logging
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from accident_pipeline.config import PipelineConfig
from accident_pipeline.database import connect
from accident_pipeline.notifications import EmailNotifier
from accident_pipeline.run_log import (
    BLOB_TRIGGER,
    RunLogEntry,
    RunLogSink,
    StageProgress,
    execute_stage,
)
from accident_pipeline.schema import (
    ACCIDENT_COLUMNS,
    SILVER_COLUMNS,
    SILVER_TABLE,
    SPATIAL_COLUMNS,
    column_names,
    create_table_sql,
    parse_csv,
)
from accident_pipeline.storage import BlobStore

logger = logging.getLogger("SilverLayer")

FUNCTION_NAME = "BlobTriggerSilver"
CANONICAL_DATE_FORMAT = "%Y-%m-%d"

# UK extracts are day-first; tried in order
DATE_FORMATS = (
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%Y/%m/%d",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
)


def normalize_date(value: Optional[str]) -> Optional[str]:
    """Return the date as YYYY-MM-DD, or the value unchanged when it cannot be parsed."""
    if value is None or pd.isna(value):
        return value
    text = str(value).strip()
    for date_format in DATE_FORMATS:
        try:
            return datetime.strptime(text, date_format).strftime(CANONICAL_DATE_FORMAT)
        except ValueError:
            continue
    return value


def create_silver_table(conn) -> None:
    """
    Create the accident_clean table if it doesn't already exist.
    """
    conn.execute(create_table_sql(SILVER_TABLE, SILVER_COLUMNS))


def clean_records(records: List[Dict[str, object]]) -> pd.DataFrame:
    """
    Normalize dates and derive the missing-data flags.

    ``location_data_missing`` is set when any of the four spatial fields is
    absent; ``lsoa_missing`` when the LSOA code is empty.
    """
    frame = pd.DataFrame.from_records(records, columns=column_names(ACCIDENT_COLUMNS))
    frame["date"] = frame["date"].map(normalize_date)
    frame["location_data_missing"] = frame[list(SPATIAL_COLUMNS)].isna().any(axis=1)
    frame["lsoa_missing"] = frame["lsoa_of_accident_location"].fillna("").astype(str).str.strip().eq("")
    return frame


def filter_located(frame: pd.DataFrame) -> pd.DataFrame:
    """Drop rows where all four spatial fields are absent."""
    unlocated = frame[list(SPATIAL_COLUMNS)].isna().all(axis=1)
    return frame[~unlocated]


def append_clean(conn, frame: pd.DataFrame) -> int:
    """
    Append cleaned rows to the consolidated silver table.

    Returns:
        Number of rows appended
    """
    if frame.empty:
        return 0
    create_silver_table(conn)
    frame = frame[column_names(SILVER_COLUMNS)].astype(object)
    frame = frame.where(frame.notna(), None)
    frame.to_sql(SILVER_TABLE, conn, if_exists="append", index=False)
    conn.commit()
    return len(frame)


def transform_blob(
    config: PipelineConfig,
    store: BlobStore,
    blob_name: str,
    progress: StageProgress,
    text: Optional[str] = None,
) -> str:
    """
    Clean one newly-arrived extract into the silver layer.

    Args:
        config: Pipeline configuration
        store: Blob store the extract is read from (unused when ``text`` is given)
        blob_name: Name of the extract
        progress: Run tally; record_count is the number of rows appended
        text: CSV content already delivered by the trigger

    Returns:
        Success message for the run log
    """
    if text is None:
        text = store.read_text(config.source_container, blob_name)

    records, row_errors = parse_csv(text, blob_name)
    for message in row_errors:
        logger.error(message)
        progress.notifications.add("CSV Parsing Error", message)

    frame = filter_located(clean_records(records))
    logger.info(f"Parsed {len(records)} records, kept {len(frame)} after filtering from blob: {blob_name}")

    if frame.empty:
        logger.warning("No valid records found in the CSV after filtering.")
        return f"Processed blob {blob_name} successfully"

    conn = connect(config.database_connection, timeout=config.operation_timeout)
    try:
        progress.record_count = append_clean(conn, frame)
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info(f"Successfully inserted {progress.record_count} records into {SILVER_TABLE}.")
    return f"Processed blob {blob_name} successfully"


def run_silver(
    blob_name: str,
    config: Optional[PipelineConfig] = None,
    triggered_by: str = BLOB_TRIGGER,
    store: Optional[BlobStore] = None,
    text: Optional[str] = None,
    notifier: Optional[EmailNotifier] = None,
    sink: Optional[RunLogSink] = None,
) -> RunLogEntry:
    """
    Silver stage entry point, invoked when a new extract arrives.

    Returns:
        The run log entry describing the outcome
    """
    def body(config: PipelineConfig, progress: StageProgress) -> str:
        blob_store = store
        if blob_store is None and text is None:
            blob_store = BlobStore.from_config(config)
        return transform_blob(config, blob_store, blob_name, progress, text=text)

    return execute_stage(FUNCTION_NAME, triggered_by, body, config=config, notifier=notifier, sink=sink)
