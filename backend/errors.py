"""Error types returned by the scheduling core."""


class SchedulingError(Exception):
    """Base class; ``message`` is safe to show to the client."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError):
    """Date or slot failed a pre-check (past date, weekend, unknown slot)."""


class ConflictError(SchedulingError):
    """The (date, slot) pair is already held by another user."""

    def __init__(self, message: str = "Slot unavailable. Please choose another time."):
        super().__init__(message)


class StorageError(SchedulingError):
    """Persistence layer unavailable or the write failed."""

    def __init__(self, message: str = "Could not save the reservation. Please try again later."):
        super().__init__(message)
