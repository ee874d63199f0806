"""Allowed transitions of design_orders.status.

The same table is enforced by the lifecycle functions in
supabase/migrations; this copy lets the API reject bad requests before
touching the database and gives admins a readable error.
"""

from src.api.middleware.error_handler import ConflictError
from src.models.design_order import DesignOrderStatus

S = DesignOrderStatus

ALLOWED_TRANSITIONS: dict[DesignOrderStatus, frozenset[DesignOrderStatus]] = {
    S.PENDING: frozenset({S.IN_PROGRESS, S.DELIVERED, S.CANCELLED}),
    S.IN_PROGRESS: frozenset({S.DELIVERED, S.CANCELLED}),
    S.DELIVERED: frozenset({S.APPROVED, S.REVISION_REQUESTED, S.COMPLETED, S.CANCELLED}),
    S.REVISION_REQUESTED: frozenset({S.IN_PROGRESS, S.DELIVERED, S.CANCELLED}),
    S.APPROVED: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}

# A new version moves the order to delivered; a delivered order keeps its status
DELIVERABLE_STATUSES = frozenset(
    {S.DELIVERED} | {status for status, targets in ALLOWED_TRANSITIONS.items() if S.DELIVERED in targets}
)


class InvalidTransitionError(ConflictError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, current: DesignOrderStatus, target: DesignOrderStatus) -> None:
        super().__init__(
            message=f"Não é possível alterar o status de '{current.value}' para '{target.value}'",
            details=[
                {
                    "loc": ["status"],
                    "msg": f"allowed: {', '.join(sorted(s.value for s in ALLOWED_TRANSITIONS[current])) or 'none'}",
                    "type": "invalid_transition",
                }
            ],
        )
        self.current = current
        self.target = target


def is_terminal(status: DesignOrderStatus | str) -> bool:
    return not ALLOWED_TRANSITIONS[DesignOrderStatus(status)]


def can_transition(current: DesignOrderStatus | str, target: DesignOrderStatus | str) -> bool:
    return DesignOrderStatus(target) in ALLOWED_TRANSITIONS[DesignOrderStatus(current)]


def validate_transition(current: DesignOrderStatus | str, target: DesignOrderStatus | str) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed."""
    current, target = DesignOrderStatus(current), DesignOrderStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)


def can_receive_delivery(status: DesignOrderStatus | str) -> bool:
    """Whether a new delivery version may be attached in this status."""
    return DesignOrderStatus(status) in DELIVERABLE_STATUSES


def validate_delivery(current: DesignOrderStatus | str) -> None:
    """Raise InvalidTransitionError unless a delivery may be attached in this status."""
    current = DesignOrderStatus(current)
    if current not in DELIVERABLE_STATUSES:
        raise InvalidTransitionError(current, S.DELIVERED)
