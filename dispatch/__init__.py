#Expose the engine's error taxonomy.
#The pipeline pieces live in their own modules and are imported from there:
#Fallback ladder (dispatch.strategies)
#Scoring / ranking (dispatch.scoring)
#Assignment orchestrator, the "one call" entry point (dispatch.dispatcher)
#Post-assignment order states (dispatch.state_machines.order_state)
#Best-effort side effects (dispatch.notifications)

from .exceptions import (
    CommitError,
    DispatchError,
    InvalidTransition,
    NotFoundError,
    NotificationError,
    RiderNotAssignedError,
    StaleOrderError,
    TransientIndexError,
    ValidationError,
)

__all__ = [
    "CommitError",
    "DispatchError",
    "InvalidTransition",
    "NotFoundError",
    "NotificationError",
    "RiderNotAssignedError",
    "StaleOrderError",
    "TransientIndexError",
    "ValidationError",
]
