"""Store module - table metadata, schema building and ingestion.

- load_registry / default_registry: YAML table metadata -> TableRegistry
- create_database: drop and recreate every table from the registry
- IngestionPipeline: stage feed rows and merge them with foreign-key repair

Usage:
    from coursebooks.store import IngestionPipeline, create_database

    create_database(db_path)
    report = IngestionPipeline(db_path).ingest_files(["Books.csv", "Sales.csv"])
"""

from coursebooks.store.contract import (
    UNRESOLVED_ID,
    TableMeta,
    TableRegistry,
    Tables,
    default_registry,
    load_registry,
)
from coursebooks.store.exceptions import IngestRowError, MergeError, SchemaError
from coursebooks.store.models import IngestResult, RunReport
from coursebooks.store.pipeline import IngestionPipeline
from coursebooks.store.schema import create_database

__all__ = [
    "UNRESOLVED_ID",
    "Tables",
    "TableMeta",
    "TableRegistry",
    "default_registry",
    "load_registry",
    "create_database",
    "IngestionPipeline",
    "IngestResult",
    "RunReport",
    "SchemaError",
    "IngestRowError",
    "MergeError",
]
