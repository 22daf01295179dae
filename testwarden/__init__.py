"""testwarden: Rule Zero test-integrity linting and AC evidence reporting."""

__version__ = "1.0.0"
