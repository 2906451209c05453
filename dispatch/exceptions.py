"""
Error taxonomy for the matching and dispatch engine.

Only ValidationError, NotFoundError, CommitError, InvalidTransition and
RiderNotAssignedError ever reach a caller. TransientIndexError is handled
inside the nearby search (linear-scan fallback) and NotificationError inside
the best-effort side-effect boundary. StaleOrderError comes from a conditional
order write and is turned into InvalidTransition by the engine.

"No rider found" is not an exception: it is a normal AssignmentResult with
rider=None and the order queued for manual assignment.
"""


class DispatchError(Exception):
    """Base class for engine errors."""
    pass


class ValidationError(DispatchError):
    """Malformed input (coordinates, radius, status value). No state was mutated."""
    pass


class NotFoundError(DispatchError):
    """A referenced rider or order id does not exist. No state was mutated."""
    pass


class TransientIndexError(DispatchError):
    """The spatial index is unavailable or broken; the search falls back to a linear scan."""
    pass


class CommitError(DispatchError):
    """A store update failed after a rider was selected."""

    def __init__(self, message: str, *, order_id: str = None, rider_id: str = None):
        super().__init__(message)
        self.order_id = order_id
        self.rider_id = rider_id


class InvalidTransition(DispatchError):
    """Raised when an invalid order status transition is attempted."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot transition from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class StaleOrderError(DispatchError):
    """
    A conditional order write found the order changed since it was read.
    Nothing was written. The engine turns this into InvalidTransition.
    """

    def __init__(self, order_id: str, field: str, expected, actual, status: str = None):
        super().__init__(f"Order {order_id} has {field}={actual!r}, expected {expected!r}")
        self.order_id = order_id
        self.field = field
        self.expected = expected
        self.actual = actual
        self.status = status


class RiderNotAssignedError(DispatchError):
    """The rider acting on an order is not the rider assigned to it."""
    pass


class NotificationError(DispatchError):
    """A notification could not be delivered. Callers log it and move on."""
    pass
