"""Base exception for the snapp scaffolder.

Every component defines its own error types next to its code; they all derive
from :class:`ScaffoldError` so the CLI can report any fatal abort uniformly.
"""

from __future__ import annotations


class ScaffoldError(Exception):
    """Base class for every fatal or reportable scaffolding error."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)
