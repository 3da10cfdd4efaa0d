import os
import re
import logging
from typing import Optional

from accident_pipeline.config import PipelineConfig
from accident_pipeline.database import connect, insert_records, recreate_table
from accident_pipeline.notifications import EmailNotifier
from accident_pipeline.run_log import (
    TIMER_TRIGGER,
    RunLogEntry,
    RunLogSink,
    StageProgress,
    execute_stage,
)
from accident_pipeline.schema import ACCIDENT_COLUMNS, parse_csv
from accident_pipeline.storage import BlobStore

logger = logging.getLogger("BronzeLayer")

FUNCTION_NAME = "TimerBlobProcessor"
BRONZE_TABLE_PREFIX = "bronze_"


def bronze_table_name(blob_name: str) -> str:
    """
    Derive the bronze table name from a blob name.

    The file stem is lowercased and dashes or spaces become underscores;
    anything else that is not a word character is dropped.
    """
    stem = os.path.splitext(os.path.basename(blob_name))[0]
    stem = stem.replace("-", "_").replace(" ", "_").lower()
    return BRONZE_TABLE_PREFIX + re.sub(r"[^\w]", "", stem)


def ingest_blob(conn, store: BlobStore, container: str, blob_name: str, progress: StageProgress) -> int:
    """
    Load one unprocessed blob into its own bronze table.

    Rows that fail to parse are skipped and queued for notification. The blob is
    marked processed only after its rows are committed; the rows are added to
    the run tally before the marker is written.

    Returns:
        Number of rows inserted
    """
    text = store.read_text(container, blob_name)
    records, row_errors = parse_csv(text, blob_name)
    for message in row_errors:
        logger.error(message)
        progress.notifications.add("CSV Parsing Error", message)

    logger.info(f"Parsed {len(records)} records from {blob_name}")

    table_name = bronze_table_name(blob_name)
    recreate_table(conn, table_name, ACCIDENT_COLUMNS)
    logger.info(f"Inserting {len(records)} records into {table_name}")
    inserted = insert_records(conn, table_name, ACCIDENT_COLUMNS, records)
    conn.commit()
    logger.info(f"Successfully inserted {inserted} records into {table_name}")
    progress.record_count += inserted

    store.mark_processed(container, blob_name)
    return inserted


def ingest_container(config: PipelineConfig, store: BlobStore, progress: StageProgress) -> str:
    """
    Ingest every unprocessed CSV blob of the source container.

    A failure on one blob is logged and reported but does not stop the others.
    """
    container = config.source_container
    processed_blobs = 0

    conn = connect(config.database_connection, timeout=config.operation_timeout)
    try:
        for blob_name in store.list_objects(container):
            if not blob_name.lower().endswith(".csv"):
                logger.info(f"Skipping non-CSV blob: {blob_name}")
                continue
            try:
                if store.is_processed(container, blob_name):
                    logger.info(f"Skipping already processed blob: {blob_name}")
                    continue
                ingest_blob(conn, store, container, blob_name, progress)
                processed_blobs += 1
            except Exception as e:
                conn.rollback()
                message = f"Error processing blob {blob_name}: {e}"
                logger.error(message)
                progress.record_error(message, subject="Blob Processing Error")
    finally:
        conn.close()

    if processed_blobs:
        progress.notifications.add(
            "Blob Processing Report",
            f"Processed and inserted data from {processed_blobs} blobs into database.",
        )
    else:
        logger.warning("No new blobs found to process.")

    message = f"Processed {processed_blobs} blobs successfully"
    if progress.errors:
        message += f"; {len(progress.errors)} failed: " + " | ".join(progress.errors)
    return message


def run_bronze(
    config: Optional[PipelineConfig] = None,
    triggered_by: str = TIMER_TRIGGER,
    store: Optional[BlobStore] = None,
    notifier: Optional[EmailNotifier] = None,
    sink: Optional[RunLogSink] = None,
) -> RunLogEntry:
    """
    Bronze stage entry point, normally invoked weekly.

    Returns:
        The run log entry describing the outcome
    """
    def body(config: PipelineConfig, progress: StageProgress) -> str:
        blob_store = store or BlobStore.from_config(config)
        return ingest_container(config, blob_store, progress)

    return execute_stage(FUNCTION_NAME, triggered_by, body, config=config, notifier=notifier, sink=sink)
