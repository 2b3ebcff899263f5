"""
Custom exceptions for the festival results engine with user-friendly messages.

Each error carries a ``status_code`` hint so request handlers can translate
it into a transport-level response without inspecting the message.
"""

class FestivalError(Exception):
    """Base exception for festival backend errors."""
    status_code = 500

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message

class NotFoundError(FestivalError):
    """Raised when a referenced entity does not exist."""
    status_code = 404

    def __init__(self, entity: str, identifier=None):
        if identifier is None:
            message = f"{entity} not found"
        else:
            message = f"{entity} not found for ID: {identifier}"
        super().__init__(message)
        self.entity = entity
        self.identifier = identifier

class ConflictError(FestivalError):
    """Raised when an operation would duplicate an existing record."""
    status_code = 409

class InvalidPositionError(FestivalError):
    """Raised when a position has no entry in the event type's scoring table."""
    status_code = 400

    def __init__(self, position, event_type_name: str = None):
        detail = f" for event type '{event_type_name}'" if event_type_name else ""
        super().__init__(
            f"Invalid position: {position}{detail}",
            "Invalid position provided"
        )
        self.position = position

class ValidationError(FestivalError):
    """Raised when request data fails validation."""
    status_code = 400

class AggregationError(FestivalError):
    """Raised when the leaderboard could not be recomputed."""

    def __init__(self, details: str = None):
        super().__init__(
            f"Leaderboard aggregation failed: {details}",
            "Failed to update leaderboard data"
        )

class TransactionError(FestivalError):
    """Raised when a transaction could not be committed."""

    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Transaction failed for {operation}: {details}",
            "Failed to save changes. Please try again."
        )
        self.operation = operation
