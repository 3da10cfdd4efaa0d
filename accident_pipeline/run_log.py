"""
Run log sink and stage runner.

Every stage invocation ends with exactly one RunLogEntry, on the success
path and on the failure path alike. Entries are appended to the
``function_logs`` table and echoed to the log as JSON.
"""

import json
import logging
import os
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional

from accident_pipeline.config import (
    DATABASE_CONNECTION_VAR,
    DEFAULT_OPERATION_TIMEOUT,
    ConfigurationError,
    PipelineConfig,
    load_config,
)
from accident_pipeline.database import connect
from accident_pipeline.notifications import EmailNotifier, NotificationQueue

logger = logging.getLogger("RunLog")

SUCCESS = "Success"
FAILED = "Failed"

TIMER_TRIGGER = "TimerTrigger"
BLOB_TRIGGER = "BlobTrigger"

RUN_LOG_TABLE = "function_logs"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class RunLogEntry:
    function_name: str
    status: str
    triggered_by: str
    record_count: int
    timestamp: datetime
    message: str

    def to_record(self) -> Dict[str, object]:
        return {
            "function_name": self.function_name,
            "status": self.status,
            "triggered_by": self.triggered_by,
            "record_count": self.record_count,
            "timestamp": self.timestamp.strftime(TIMESTAMP_FORMAT),
            "message": self.message,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_record())


class RunLogSink:
    """Appends run log entries to the relational store."""

    def __init__(self, database: Optional[str], timeout: int = DEFAULT_OPERATION_TIMEOUT):
        self.database = database
        self.timeout = timeout

    @classmethod
    def from_environment(cls, env: Optional[Mapping[str, str]] = None) -> "RunLogSink":
        """Build a sink from whatever database setting exists, even when the full config is invalid."""
        env = os.environ if env is None else env
        return cls((env.get(DATABASE_CONNECTION_VAR) or "").strip() or None)

    @staticmethod
    def ensure_table(conn: sqlite3.Connection) -> None:
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {RUN_LOG_TABLE} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                function_name TEXT NOT NULL,
                status TEXT NOT NULL,
                triggered_by TEXT,
                record_count INTEGER,
                timestamp TEXT NOT NULL,
                message TEXT
            )
        """)

    def write(self, entry: RunLogEntry) -> bool:
        """
        Persist one entry.

        Returns:
            True if the entry reached the database, False if it was only logged
        """
        logger.info(f"Log entry JSON: {entry.to_json()}")
        if not self.database:
            logger.error("No database configured; run log entry was not persisted.")
            return False

        record = entry.to_record()
        conn = None
        try:
            conn = connect(self.database, timeout=self.timeout)
            self.ensure_table(conn)
            conn.execute(
                f"""
                INSERT INTO {RUN_LOG_TABLE}
                (function_name, status, triggered_by, record_count, timestamp, message)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record["function_name"],
                    record["status"],
                    record["triggered_by"],
                    record["record_count"],
                    record["timestamp"],
                    record["message"],
                ),
            )
            conn.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"Error writing run log entry: {e}")
            return False
        finally:
            if conn:
                conn.close()


@dataclass
class StageProgress:
    """Mutable tally shared between a stage body and the stage runner."""

    record_count: int = 0
    errors: List[str] = field(default_factory=list)
    notifications: NotificationQueue = field(default_factory=NotificationQueue)

    def record_error(self, message: str, subject: Optional[str] = None) -> None:
        self.errors.append(message)
        if subject:
            self.notifications.add(subject, message)


StageBody = Callable[[PipelineConfig, StageProgress], str]


def execute_stage(
    function_name: str,
    triggered_by: str,
    body: StageBody,
    config: Optional[PipelineConfig] = None,
    notifier: Optional[EmailNotifier] = None,
    sink: Optional[RunLogSink] = None,
) -> RunLogEntry:
    """
    Run one stage body and record its outcome.

    The body returns the success message and updates ``progress`` as it goes,
    so a failure still reports the records handled before it. Queued
    notifications are flushed after the body finishes, before the entry is
    written.

    Args:
        function_name: Stage name recorded in the run log
        triggered_by: Trigger kind recorded in the run log
        body: Callable doing the stage work
        config: Validated configuration (loaded from the environment if omitted)
        notifier: Email notifier (built from the config if omitted)
        sink: Run log sink (built from the config if omitted)

    Returns:
        The RunLogEntry that was written
    """
    timestamp = datetime.now(timezone.utc)
    logger.info(f"Started {function_name} at: {timestamp.strftime(TIMESTAMP_FORMAT)}")

    if config is None:
        try:
            config = load_config()
        except ConfigurationError as e:
            logger.error(f"Configuration error in {function_name}: {e}")
            entry = RunLogEntry(function_name, FAILED, triggered_by, 0, timestamp, f"Error in {function_name}: {e}")
            (sink or RunLogSink.from_environment()).write(entry)
            return entry

    if sink is None:
        sink = RunLogSink(config.database_connection, config.operation_timeout)
    if notifier is None:
        notifier = EmailNotifier.from_config(config)

    progress = StageProgress()
    try:
        message = body(config, progress)
        status = SUCCESS
    except Exception as e:
        status = FAILED
        message = f"Error in {function_name}: {e}"
        logger.error(f"Error processing {function_name}: {e}")
        progress.notifications.add(f"{function_name} Failed", message)

    progress.notifications.flush(notifier)

    entry = RunLogEntry(function_name, status, triggered_by, progress.record_count, timestamp, message)
    sink.write(entry)
    return entry
