"""Table metadata registry.

Declarative description of every physical table in the store: columns and
their types, keys, foreign-key references, the feed fields each column is
projected from, and index definitions. The metadata itself lives in
``tables.yaml`` next to this module and is validated once when loaded;
everything downstream (schema builder, merge engine, pipeline, query service)
reads table and column names from here.
"""

import re
from enum import Enum
from functools import lru_cache
from graphlib import CycleError, TopologicalSorter
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from coursebooks.store.exceptions import SchemaError

DEFAULT_REGISTRY_PATH = Path(__file__).parent / "tables.yaml"

# Reserved ID of the placeholder row standing in for "reference target unknown"
UNRESOLVED_ID = 0

STAGING_PREFIX = "temp_"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_REFERENTIAL_ACTIONS = {"CASCADE", "SET NULL", "SET DEFAULT", "RESTRICT", "NO ACTION"}


class Tables:
    """Physical table names."""

    BOOKS = "Books"
    COURSES = "Courses"
    COURSE_BOOK = "Course_Book"
    SALES = "Sales"
    PRICES = "Prices"
    INVENTORY = "Inventory"


class ColumnType(str, Enum):
    """SQLite column types accepted in table metadata."""
    INTEGER = "INTEGER"
    TEXT = "TEXT"
    REAL = "REAL"
    NUMERIC = "NUMERIC"


class MissingReference(str, Enum):
    """What the merge does with a staged value whose referenced row is absent."""
    PLACEHOLDER = "placeholder"  # rewrite to UNRESOLVED_ID
    SKIP = "skip"                # drop the staged row


def _check_identifier(value: str) -> str:
    if not _IDENTIFIER.match(value):
        raise ValueError(f"'{value}' is not a valid SQL identifier")
    return value


class ForeignKey(BaseModel):
    """Reference from a column to another table's key column."""
    model_config = ConfigDict(extra='forbid')

    table: str
    column: str = "ID"
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    on_missing: MissingReference = MissingReference.PLACEHOLDER

    @field_validator('table', 'column')
    @classmethod
    def validate_identifier(cls, v):
        return _check_identifier(v)

    @field_validator('on_delete', 'on_update')
    @classmethod
    def validate_action(cls, v):
        if v is None:
            return v
        action = " ".join(v.upper().split())
        if action not in _REFERENTIAL_ACTIONS:
            raise ValueError(f"Unsupported referential action: {v}")
        return action


class ColumnMeta(BaseModel):
    """One column of a table.

    ``source`` lists the feed fields the column is built from. One field is a
    straight copy; several are concatenated with an empty separator. When
    omitted the column is read from the feed field of the same name.
    """
    model_config = ConfigDict(extra='forbid')

    name: str
    type: ColumnType
    primary_key: bool = False
    required: bool = False
    source: List[str] = Field(default_factory=list)
    references: Optional[ForeignKey] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return _check_identifier(v)

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @model_validator(mode='after')
    def default_source(self):
        if not self.source:
            self.source = [self.name]
        if self.primary_key:
            self.required = True
        return self


class TableMeta(BaseModel):
    """Full description of one table."""
    model_config = ConfigDict(extra='forbid')

    name: str
    file_name: Optional[str] = None
    has_header: bool = True
    headers: List[str] = Field(default_factory=list)
    columns: List[ColumnMeta] = Field(..., min_length=1)
    composite_key: List[str] = Field(default_factory=list)
    indexes: List[List[str]] = Field(default_factory=list)
    placeholder: bool = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return _check_identifier(v)

    @model_validator(mode='after')
    def validate_table(self):
        names = [c.name for c in self.columns]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"{self.name}: duplicate columns {sorted(duplicates)}")

        pk_columns = [c.name for c in self.columns if c.primary_key]
        if len(pk_columns) > 1:
            raise ValueError(f"{self.name}: use composite_key instead of several primary_key columns")
        if pk_columns and self.composite_key:
            raise ValueError(f"{self.name}: declares both a primary key column and a composite key")

        for key in self.composite_key:
            if key not in names:
                raise ValueError(f"{self.name}: composite key names unknown column '{key}'")
        for index in self.indexes:
            if not index:
                raise ValueError(f"{self.name}: empty index definition")
            for col in index:
                if col not in names:
                    raise ValueError(f"{self.name}: index names unknown column '{col}'")

        if not self.has_header and not self.headers:
            raise ValueError(f"{self.name}: headerless feed files need a headers list")
        if self.headers:
            for col in self.columns:
                missing = [s for s in col.source if s not in self.headers]
                if missing:
                    raise ValueError(f"{self.name}.{col.name}: source fields {missing} not in headers")

        if self.placeholder:
            if len(pk_columns) != 1 or self.column(pk_columns[0]).type != ColumnType.INTEGER:
                raise ValueError(f"{self.name}: a placeholder row needs a single INTEGER primary key")

        # Key members can never be NULL in a staged row
        for col in self.columns:
            if col.name in self.composite_key:
                col.required = True

        if self.file_name is None:
            self.file_name = self.name
        return self

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def primary_key(self) -> Optional[str]:
        for c in self.columns:
            if c.primary_key:
                return c.name
        return None

    @property
    def key_columns(self) -> List[str]:
        """Conflict target of the upsert: the primary key, else the composite key."""
        pk = self.primary_key
        return [pk] if pk else list(self.composite_key)

    @property
    def staging_name(self) -> str:
        return f"{STAGING_PREFIX}{self.name}"

    @property
    def foreign_keys(self) -> List[ColumnMeta]:
        return [c for c in self.columns if c.references is not None]

    def column(self, name: str) -> ColumnMeta:
        for c in self.columns:
            if c.name == name:
                return c
        raise KeyError(f"{self.name} has no column '{name}'")


class TableRegistry(BaseModel):
    """Every table of the store, in declaration order."""
    model_config = ConfigDict(extra='forbid')

    tables: List[TableMeta] = Field(..., min_length=1)

    @model_validator(mode='after')
    def validate_references(self):
        by_name: Dict[str, TableMeta] = {}
        for table in self.tables:
            if table.name in by_name:
                raise ValueError(f"Table '{table.name}' declared twice")
            by_name[table.name] = table

        for table in self.tables:
            for col in table.foreign_keys:
                ref = col.references
                target = by_name.get(ref.table)
                if target is None:
                    raise ValueError(f"{table.name}.{col.name} references unknown table '{ref.table}'")
                if ref.column not in target.column_names:
                    raise ValueError(
                        f"{table.name}.{col.name} references unknown column '{ref.table}.{ref.column}'"
                    )
                if ref.on_missing == MissingReference.PLACEHOLDER:
                    if not target.placeholder or target.primary_key != ref.column:
                        raise ValueError(
                            f"{table.name}.{col.name} repairs to a placeholder but "
                            f"{ref.table} does not keep one on {ref.column}"
                        )
        return self

    def get(self, name: str) -> TableMeta:
        for table in self.tables:
            if table.name == name:
                return table
        raise SchemaError(f"Unknown table: {name}", table=name)

    def has(self, name: str) -> bool:
        return any(t.name == name for t in self.tables)

    def names(self) -> List[str]:
        return [t.name for t in self.tables]

    def merge_order(self) -> List[str]:
        """Tables sorted so every referenced table precedes the tables that reference it.

        Raises:
            SchemaError: If the references form a cycle
        """
        sorter = TopologicalSorter()
        for table in self.tables:
            deps = [c.references.table for c in table.foreign_keys if c.references.table != table.name]
            sorter.add(table.name, *deps)
        try:
            return list(sorter.static_order())
        except CycleError as e:
            raise SchemaError(f"Foreign keys form a cycle: {e.args[1]}") from e

    def table_for_file(self, file_path: str | Path) -> Optional[TableMeta]:
        """Resolve the table a feed file belongs to from its base name.

        An exact (case-insensitive) match on table name or ``file_name`` wins;
        otherwise the longest ``file_name`` contained in the stem.
        """
        stem = Path(file_path).stem.lower()
        for table in self.tables:
            if stem in (table.name.lower(), table.file_name.lower()):
                return table

        candidates = [t for t in self.tables if t.file_name.lower() in stem]
        if not candidates:
            return None
        return max(candidates, key=lambda t: len(t.file_name))


def load_registry(path: Optional[str | Path] = None) -> TableRegistry:
    """Load and validate table metadata from YAML.

    Args:
        path: YAML file with a top-level ``tables`` list; the packaged
              ``tables.yaml`` when omitted

    Returns:
        Validated TableRegistry

    Raises:
        SchemaError: If the file is missing, is not valid YAML, or fails validation
    """
    path = Path(path) if path else DEFAULT_REGISTRY_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise SchemaError(f"Table metadata not found: {path}") from e
    except yaml.YAMLError as e:
        raise SchemaError(f"Table metadata is not valid YAML ({path}): {e}") from e

    if not isinstance(data, dict):
        raise SchemaError(f"Table metadata must be a mapping with a 'tables' list: {path}")

    try:
        return TableRegistry(**data)
    except ValidationError as e:
        raise SchemaError(f"Invalid table metadata in {path}:\n{e}") from e


@lru_cache(maxsize=1)
def default_registry() -> TableRegistry:
    """The packaged registry, loaded once per process."""
    return load_registry(DEFAULT_REGISTRY_PATH)
