"""Domain models for the CSV -> database import engine.

This package contains the domain model classes shared by the reader, the
field mapper, the insertion driver and the orchestrator.
"""

from .cell import Cell, Presence, Row
from .descriptor import (
    ConversionSpec,
    FieldSpec,
    HiddenField,
    ImportDescriptor,
    LoaderSpec,
    ValidationSpec,
)
from .import_result import Issue, IssueKind, RowResult

__all__ = [
    # Input models
    "Cell",
    "Presence",
    "Row",
    # Descriptor models
    "ConversionSpec",
    "FieldSpec",
    "HiddenField",
    "ImportDescriptor",
    "LoaderSpec",
    "ValidationSpec",
    # Result models
    "Issue",
    "IssueKind",
    "RowResult",
]
