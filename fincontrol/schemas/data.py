"""
Pydantic schemas for exporting, importing and wiping user data.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ImportMode(str, Enum):
    MERGE = "merge"
    REPLACE = "replace"


class ExportedDocument(BaseModel):
    id: str
    data: dict


class DataExport(BaseModel):
    version: int = 1
    exported_at: datetime
    collections: dict[str, list[ExportedDocument]] = Field(default_factory=dict)


class DataCounts(BaseModel):
    """Documents written (import) or removed (cleanup), per collection."""

    mode: ImportMode | None = None
    counts: dict[str, int] = Field(default_factory=dict)
