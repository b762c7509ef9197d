"""Custom exceptions for decision module."""

from typing import Optional


class DecisionInputError(Exception):
    """A decision request cannot be calculated.

    Raised for an unreadable term code, a decision file row missing a
    required field or carrying a non-numeric value, or a file without rows
    for the store. Always raised before any calculation runs, so a file is
    calculated completely or not at all.
    """

    def __init__(self, message: str, field: Optional[str] = None, line: Optional[int] = None):
        super().__init__(message)
        self.field = field
        self.line = line

    @classmethod
    def from_missing_field(cls, field: str, line: int, row: dict) -> "DecisionInputError":
        """Create error for a decision file row without a required field."""
        return cls(f"Missing value for required field: {field} (row {line})\n{row}", field=field, line=line)
