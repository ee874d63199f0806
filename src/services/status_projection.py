"""Derived progress view of a design order.

Everything here is a pure function of the order row and its deliveries, so
the client page, the order list and the lifecycle mutations all agree on
when an order counts as finished and which actions are open.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from src.models.design_order import DeliveryStatus, DesignOrderStatus
from src.services.order_state_machine import is_terminal

# Versions 1-3 are the contracted deliveries, 4-5 are bonus rounds, 6 closes the order
STANDARD_DELIVERIES = 3
MAX_DELIVERIES = 6
DEFAULT_MAX_REVISIONS = 2

FINISHED_STATUSES = frozenset({DesignOrderStatus.APPROVED, DesignOrderStatus.COMPLETED})

PROGRESS_STEPS = (
    DesignOrderStatus.PENDING,
    DesignOrderStatus.IN_PROGRESS,
    DesignOrderStatus.DELIVERED,
    DesignOrderStatus.APPROVED,
)


@dataclass(frozen=True)
class DeliveryBadge:
    """Highlight shown next to a delivery in the history."""

    label: str
    variant: str


@dataclass(frozen=True)
class DeliveryView:
    """One delivery as presented to the client."""

    delivery_id: str
    version_number: int
    status: DeliveryStatus
    label: str
    badge: DeliveryBadge | None
    is_latest: bool


@dataclass(frozen=True)
class StatusProjection:
    """Completion flags and action gates for one order."""

    delivery_count: int
    is_order_complete: bool
    is_fully_finalized: bool
    display_status: DesignOrderStatus
    can_approve: bool
    can_request_revision: bool
    revisions_used: int
    max_revisions: int
    latest_delivery_id: str | None = None
    deliveries: tuple[DeliveryView, ...] = field(default_factory=tuple)

    @property
    def revisions_remaining(self) -> int:
        return max(self.max_revisions - self.revisions_used, 0)

    @property
    def has_deliveries(self) -> bool:
        return self.delivery_count > 0


def is_order_complete(delivery_count: int, status: DesignOrderStatus | str) -> bool:
    """Either the standard delivery count was reached or the order was closed as done."""
    return delivery_count >= STANDARD_DELIVERIES or DesignOrderStatus(status) in FINISHED_STATUSES


def order_max_revisions(order: Mapping[str, Any]) -> int:
    """Revision budget of an order row, falling back to the package default."""
    max_revisions = order.get("max_revisions")
    return DEFAULT_MAX_REVISIONS if max_revisions is None else max_revisions


def is_fully_finalized(delivery_count: int) -> bool:
    return delivery_count >= MAX_DELIVERIES


def delivery_label(version_number: int) -> str:
    """Human label for a delivery version."""
    if version_number < 1:
        raise ValueError(f"version_number must be positive, got {version_number}")
    if version_number <= STANDARD_DELIVERIES:
        return f"Versão {version_number}"
    if version_number == 4:
        return "Bônus - Entrega Final"
    if version_number == 5:
        return "Bônus Extra"
    return "Finalizado"


def delivery_badge(version_number: int, is_latest: bool, order_complete: bool) -> DeliveryBadge | None:
    """Badge for a delivery, or None when the version gets no highlight."""
    if version_number == 4:
        return DeliveryBadge(label="Bônus Final", variant="bonus_final")
    if version_number == 5:
        return DeliveryBadge(label="Bônus", variant="bonus")
    if version_number >= MAX_DELIVERIES:
        return DeliveryBadge(label="Entrega Final", variant="final_delivery")
    if is_latest and order_complete:
        return DeliveryBadge(label="Versão Final", variant="final_version")
    return None


def progress_percent(status: DesignOrderStatus | str) -> int:
    """Progress bar value used by the order list."""
    status = DesignOrderStatus(status)
    if status in (DesignOrderStatus.APPROVED, DesignOrderStatus.COMPLETED):
        return 100
    if status == DesignOrderStatus.REVISION_REQUESTED:
        status = DesignOrderStatus.IN_PROGRESS
    try:
        step = PROGRESS_STEPS.index(status)
    except ValueError:
        step = -1
    return max(int((step + 1) / len(PROGRESS_STEPS) * 100), 25)


def _latest(deliveries: Sequence[Mapping[str, Any]]) -> Mapping[str, Any] | None:
    if not deliveries:
        return None
    return max(deliveries, key=lambda d: d["version_number"])


def project_order(
    order: Mapping[str, Any],
    deliveries: Sequence[Mapping[str, Any]],
) -> StatusProjection:
    """Compute the status projection for an order.

    Args:
        order: design_orders row (status, revisions_used, max_revisions).
        deliveries: All deliveries of the order, in any order.

    Returns:
        StatusProjection: Flags, gates and per-delivery labels.
    """
    status = DesignOrderStatus(order["status"])
    revisions_used = order.get("revisions_used") or 0
    max_revisions = order_max_revisions(order)

    count = len(deliveries)
    complete = is_order_complete(count, status)
    latest = _latest(deliveries)

    latest_pending = latest is not None and DeliveryStatus(latest["status"]) == DeliveryStatus.PENDING_REVIEW
    can_approve = latest_pending and not complete and not is_terminal(status)
    can_request_revision = can_approve and revisions_used < max_revisions

    views = tuple(
        DeliveryView(
            delivery_id=str(d["id"]),
            version_number=d["version_number"],
            status=DeliveryStatus(d["status"]),
            label=delivery_label(d["version_number"]),
            badge=delivery_badge(d["version_number"], d is latest, complete),
            is_latest=d is latest,
        )
        for d in sorted(deliveries, key=lambda d: d["version_number"], reverse=True)
    )

    return StatusProjection(
        delivery_count=count,
        is_order_complete=complete,
        is_fully_finalized=is_fully_finalized(count),
        display_status=DesignOrderStatus.COMPLETED if complete else status,
        can_approve=can_approve,
        can_request_revision=can_request_revision,
        revisions_used=revisions_used,
        max_revisions=max_revisions,
        latest_delivery_id=str(latest["id"]) if latest is not None else None,
        deliveries=views,
    )
