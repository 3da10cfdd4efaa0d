"""
UK Road Accident Medallion ETL Package

Modules:
    bronze.py     - Ingests raw accident CSV extracts from blob storage into bronze tables.
    silver.py     - Cleans newly-arrived extracts into the consolidated silver table.
    dimensions.py - Maintains the SCD Type 2 dimension tables of the gold layer.
    facts.py      - Rebuilds the gold fact table from the current dimension versions.
    gold.py       - Runs the dimension refresh followed by the fact rebuild.
    run_log.py    - Records one outcome entry per stage invocation.
    run_pipeline.py - Command-line entry point for the stages.

Version: 1.0.0
"""

__version__ = "1.0.0"
