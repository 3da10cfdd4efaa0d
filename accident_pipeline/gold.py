import logging
from datetime import date
from typing import Optional

from accident_pipeline.config import PipelineConfig
from accident_pipeline.database import connect
from accident_pipeline.dimensions import DIMENSIONS, refresh_all_dimensions
from accident_pipeline.facts import FACT_TABLE, rebuild_fact_table
from accident_pipeline.notifications import EmailNotifier
from accident_pipeline.run_log import (
    TIMER_TRIGGER,
    RunLogEntry,
    RunLogSink,
    StageProgress,
    execute_stage,
)
from accident_pipeline.schema import SILVER_TABLE

logger = logging.getLogger("GoldLayer")

FUNCTION_NAME = "TimeTriggertoGold"


def build_gold(config: PipelineConfig, progress: StageProgress, run_date: Optional[date] = None) -> str:
    """
    Refresh every dimension, then rebuild the fact table.

    Dimension failures are per attribute and leave the run going; a fact
    rebuild failure propagates and fails the run.

    Returns:
        Success message for the run log
    """
    conn = connect(config.database_connection, timeout=config.operation_timeout)
    logger.info("Database connection opened successfully.")
    try:
        inserted, errors = refresh_all_dimensions(conn, DIMENSIONS, SILVER_TABLE, run_date)
        progress.record_count += inserted
        for message in errors:
            progress.record_error(message, subject="Dimension Processing Error")

        progress.record_count += rebuild_fact_table(conn, SILVER_TABLE, FACT_TABLE, DIMENSIONS)
    finally:
        conn.close()

    if progress.errors:
        return f"Processed {progress.record_count} records with errors; last error: {progress.errors[-1]}"
    return f"Processed {progress.record_count} records successfully"


def run_gold(
    config: Optional[PipelineConfig] = None,
    triggered_by: str = TIMER_TRIGGER,
    run_date: Optional[date] = None,
    notifier: Optional[EmailNotifier] = None,
    sink: Optional[RunLogSink] = None,
) -> RunLogEntry:
    """
    Gold stage entry point, run on its own schedule.

    Returns:
        The run log entry describing the outcome
    """
    def body(config: PipelineConfig, progress: StageProgress) -> str:
        return build_gold(config, progress, run_date)

    return execute_stage(FUNCTION_NAME, triggered_by, body, config=config, notifier=notifier, sink=sink)
