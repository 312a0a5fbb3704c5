"""
Platform-wide exception hierarchy.

Services raise these types; `okr_tracker.create_app` registers one Flask
error handler per type, so every blueprint gets the same status code and
JSON body shape without its own try/except.

Usage:
    from okr_tracker.core.exceptions import NotFoundError, InvalidStateError

    raise NotFoundError(resource="Goal", resource_id=42)
    raise InvalidStateError("Cannot add a KeyResult under an inactive Objective")
"""


class NotFoundError(Exception):
    """Raised when a referenced record does not exist.

    Always surfaced to the caller; never retried internally.

    Args:
        resource: Human-readable entity name (e.g. "Project", "KeyResult").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class InvalidStateError(Exception):
    """Raised when an operation is not allowed in the record's current state.

    Example: attaching a child under a soft-deleted parent.  Surfaced as-is,
    never auto-corrected.  Maps to HTTP 409.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(Exception):
    """Raised when input is well-formed JSON but violates a field rule.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)
