class BrennerError(Exception):
    """Base exception for brenner domain errors."""

    pass


class DeltaParseError(BrennerError):
    """Raised when a delta block cannot be turned into an operation."""

    pass


class MergeConflict(BrennerError):
    """Raised when a single operation cannot be applied to the artifact."""

    def __init__(self, reason: str, detail: str = ""):
        super().__init__(detail or reason)
        self.reason = reason
        self.detail = detail


class StorageCorruptionError(BrennerError):
    """Raised when a persisted session or index file cannot be read."""

    def __init__(self, path, detail: str):
        super().__init__(f"{path}: {detail}")
        self.path = path
        self.detail = detail


class AnomalyValidationError(BrennerError, ValueError):
    """Raised when an anomaly record violates its schema."""

    pass


class AnomalyTransitionError(BrennerError, ValueError):
    """Raised when a quarantine status transition is not allowed."""

    pass


class AnomalySequenceOverflow(BrennerError):
    """Raised when a session runs out of anomaly sequence numbers."""

    pass
