"""
Failure taxonomy for the spreadsheet compilation pipeline.
"""

from __future__ import annotations

from enum import Enum
from typing import Sequence

from .generation_spec import SemanticIssue


class FailureKind(str, Enum):
    RECOVERY_FAILED = "RECOVERY_FAILED"
    STRUCTURAL_INVALID = "STRUCTURAL_INVALID"
    SEMANTIC_INVALID = "SEMANTIC_INVALID"


class SpreadsheetPipelineError(Exception):
    """Base class for every error raised by the spreadsheet pipeline."""


class RepairExhaustedError(SpreadsheetPipelineError):
    """Both the initial generation and the single repair attempt failed."""

    def __init__(self, failure: FailureKind, issues: Sequence[SemanticIssue]):
        self.failure = failure
        self.issues = list(issues)
        super().__init__(
            f"Spreadsheet generation failed after repair ({failure.value}, "
            f"{len(self.issues)} issue(s))"
        )


class UnsupportedExportError(SpreadsheetPipelineError):
    def __init__(self, export_format: str, sheet_count: int):
        self.export_format = export_format
        self.sheet_count = sheet_count
        super().__init__(
            f"{export_format} export requires exactly one sheet, schema has {sheet_count}"
        )


class RenderError(SpreadsheetPipelineError):
    """A validated schema violated a rendering invariant."""
