"""Result models for ingestion runs."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class IngestResult(BaseModel):
    """Outcome of staging and merging one table."""
    model_config = ConfigDict(extra='forbid')

    table: str
    source: Optional[str] = Field(None, description="File the rows were read from")
    received: int = Field(0, ge=0, description="Rows handed to the pipeline")
    staged: int = Field(0, ge=0, description="Rows written to the staging table")
    skipped: int = Field(0, ge=0, description="Rows rejected while staging")
    merged: int = Field(0, ge=0, description="Rows inserted or updated in the final table")


class RunReport(BaseModel):
    """Outcome of a multi-file ingestion run.

    Tables are merged in dependency order and the run stops at the first
    failing table; results hold every table merged before it.
    """
    model_config = ConfigDict(extra='forbid')

    run_id: Optional[str] = None
    results: List[IngestResult] = Field(default_factory=list)
    unmatched: List[str] = Field(default_factory=list, description="Files no table claims")
    failed_table: Optional[str] = None
    error: Optional[str] = None
    ok: bool = True
