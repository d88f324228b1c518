"""
scribeline.exceptions - Custom exception classes.

All Scribeline-specific exceptions inherit from ScribelineError.
"""


class ScribelineError(Exception):
    """Base exception for all Scribeline errors."""

    pass


class ConfigError(ScribelineError):
    """Configuration loading or validation error."""

    pass


class ExportError(ScribelineError):
    """Caption or transcript export error."""

    pass


class StorageError(ScribelineError):
    """Persisted session could not be read or written."""

    def __init__(self, session_id: str, message: str):
        self.session_id = session_id
        self.message = message
        super().__init__(f"{session_id}: {message}")
