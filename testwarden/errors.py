"""testwarden: Structured Exception Hierarchy.

CLI entry points catch ``TestwardenError``, print the message to stderr
and exit 1. Library code raises the most specific subclass.

Usage:
    from testwarden.errors import InputNotFoundError

    raise InputNotFoundError("No test results JSON found", searched=candidates)
"""

from typing import List, Optional


class TestwardenError(Exception):
    """Base exception for all testwarden errors."""

    __test__ = False  # keep pytest from collecting the class by name


class InputNotFoundError(TestwardenError):
    """A required input file could not be located.

    Attributes:
        searched: Candidate paths that were tried, in order.
    """

    def __init__(self, message: str, searched: Optional[List[str]] = None):
        super().__init__(message)
        self.searched = list(searched or [])

    def __str__(self) -> str:
        base = super().__str__()
        if self.searched:
            return f"{base}\nSearched: {', '.join(self.searched)}"
        return base


class ResultsFormatError(TestwardenError):
    """The structured test-run document could not be parsed."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class ConfigFormatError(TestwardenError):
    """A project config source is malformed.

    Attributes:
        line: 1-based line of the offending entry, 0 when not line-specific.
    """

    def __init__(self, message: str, line: int = 0):
        super().__init__(message)
        self.line = line
