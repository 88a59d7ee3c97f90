"""
Error types for CCA Memory

Every failure the memory engine reports derives from MemorySystemError so
callers can catch the whole family at the front-end boundary.
"""


class MemorySystemError(Exception):
    """Base class for all memory engine errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AdmissionError(MemorySystemError):
    """Raised when an artifact does not belong to the scope it was routed to."""

    def __init__(self, message: str, scope_name: str, artifact_id: str | None = None):
        self.scope_name = scope_name
        self.artifact_id = artifact_id
        super().__init__(f"[{scope_name}] {message}")


class DuplicateScopeError(MemorySystemError):
    """Raised when a task scope is created twice for the same task id."""

    def __init__(self, scope_name: str):
        self.scope_name = scope_name
        super().__init__(f"Task scope already exists: {scope_name}")


class ScopeNotFoundError(MemorySystemError):
    """Raised when a named scope is not registered."""

    def __init__(self, scope_name: str):
        self.scope_name = scope_name
        super().__init__(f"Scope not found: {scope_name}")


class CorruptRecordError(MemorySystemError):
    """Raised when a persisted artifact record cannot be parsed."""

    def __init__(self, message: str, path: str, original_error: Exception | None = None):
        self.path = path
        self.original_error = original_error
        super().__init__(f"{path}: {message}")


class StorageConfigError(MemorySystemError):
    """Raised when the storage configuration names an unsupported backend."""


class BeadsError(MemorySystemError):
    """Raised when the Beads issue tracker cannot be queried."""

    def __init__(self, message: str, command: list[str] | None = None):
        self.command = command or []
        super().__init__(message)
