from .order_state import (
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    OrderStatusMachine,
    RiderOrderStatus,
    validate_transition,
)

__all__ = [
    "OrderStatusMachine",
    "RiderOrderStatus",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
    "validate_transition",
]
