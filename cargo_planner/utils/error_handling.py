from typing import Any, Dict, Optional


class InventoryError(Exception):
    """Base error for rejected inventory operations.

    ``details`` is returned to the client alongside the message.
    """

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class PlacementValidationError(InventoryError):
    """Planner input is malformed; nothing was planned."""


class NotFoundError(InventoryError):
    status_code = 404


class CapacityConflictError(InventoryError):
    """A container aggregate would exceed its limits when applying a plan."""

    status_code = 409
