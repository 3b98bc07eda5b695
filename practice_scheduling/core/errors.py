"""Error taxonomy for the scheduling core.

Every failure raised by a service is one of these kinds, so callers can map
them to responses (or retry) without parsing messages. Only ``StoreError`` is
safe to retry blindly.
"""


class SchedulingError(Exception):
    """Base class for all scheduling failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError):
    """Malformed input, rejected before touching the store."""

    def __init__(self, message: str, errors: list[dict] | None = None, field: str | None = None):
        super().__init__(message)
        if errors is None:
            errors = [{"field": field, "message": message}] if field else []
        self.errors = errors


class NotFoundError(SchedulingError):
    def __init__(self, entity: str, identifier):
        super().__init__(f"{entity} not found.")
        self.entity = entity
        self.identifier = identifier


class StateConflictError(SchedulingError):
    """Requested transition is illegal from the current state."""

    def __init__(self, message: str, current_status: str | None = None, requested_status: str | None = None):
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status


class BookingConflictError(StateConflictError):
    """Requested interval collides with an active appointment."""

    def __init__(self, message: str, slot: dict | None = None):
        super().__init__(message)
        self.slot = slot or {}


class SlotUnavailableError(StateConflictError):
    """Requested interval falls outside the staff member's working time."""

    def __init__(self, message: str, slot: dict | None = None):
        super().__init__(message)
        self.slot = slot or {}


class StoreError(SchedulingError):
    """The backing store failed; nothing was committed."""
