#!/usr/bin/env python3
"""
Accident Pipeline Command-Line Entry Point

Each stage is invoked by an external scheduler or trigger:
    bronze - weekly, ingests new extracts from blob storage
    silver - on blob arrival, cleans one extract into accident_clean
    gold   - on its own schedule, refreshes dimensions then rebuilds facts

The process exits non-zero when the stage's run log entry is Failed.
"""

import argparse
import sys
from datetime import date

from accident_pipeline.bronze import run_bronze
from accident_pipeline.gold import run_gold
from accident_pipeline.run_log import BLOB_TRIGGER, FAILED, TIMER_TRIGGER
from accident_pipeline.silver import run_silver
from accident_pipeline.utils.logger import setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Run one stage of the accident medallion ETL pipeline')
    parser.add_argument('--log-dir', type=str, default='logs', help='Directory for log files')
    subparsers = parser.add_subparsers(dest='stage', required=True)

    bronze = subparsers.add_parser('bronze', help='Ingest unprocessed CSV extracts into bronze tables')
    bronze.add_argument('--triggered-by', type=str, default=TIMER_TRIGGER)

    silver = subparsers.add_parser('silver', help='Clean one extract into the silver table')
    silver.add_argument('--blob', type=str, required=True, help='Name of the newly-arrived blob')
    silver.add_argument('--triggered-by', type=str, default=BLOB_TRIGGER)

    gold = subparsers.add_parser('gold', help='Refresh dimensions and rebuild the fact table')
    gold.add_argument('--triggered-by', type=str, default=TIMER_TRIGGER)
    gold.add_argument('--run-date', type=date.fromisoformat, default=None, help='Run date (YYYY-MM-DD)')

    return parser


def main(argv=None) -> int:
    """Command-line entry point for the pipeline."""
    args = build_parser().parse_args(argv)
    setup_logger('', log_file='accident_pipeline.log', log_dir=args.log_dir)

    if args.stage == 'bronze':
        entry = run_bronze(triggered_by=args.triggered_by)
    elif args.stage == 'silver':
        entry = run_silver(args.blob, triggered_by=args.triggered_by)
    else:
        entry = run_gold(triggered_by=args.triggered_by, run_date=args.run_date)

    print(f"{entry.function_name}: {entry.status} ({entry.record_count} records) - {entry.message}")
    return 1 if entry.status == FAILED else 0


if __name__ == "__main__":
    sys.exit(main())
