"""Design order model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import Any, TypedDict
from uuid import UUID


class DesignOrderStatus(str, Enum):
    """Order status values matching the design_orders.status column."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DELIVERED = "delivered"
    REVISION_REQUESTED = "revision_requested"
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeliveryStatus(str, Enum):
    """Review status of a single delivery version."""

    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"


class FeedbackType(str, Enum):
    """Client decision recorded in design_feedback."""

    APPROVE = "approve"
    REVISION = "revision"


class DesignCategory(TypedDict):
    """Embedded design_service_categories row."""

    name: str


class DesignPackage(TypedDict, total=False):
    """Embedded design_packages row."""

    id: UUID
    name: str
    price: float
    description: str | None
    category: DesignCategory | None


class DesignOrder(TypedDict):
    """design_orders table row representation.

    revisions_used never exceeds max_revisions (CHECK constraint).
    """

    id: UUID
    client_id: UUID
    package_id: UUID
    status: DesignOrderStatus
    payment_status: str
    revisions_used: int
    max_revisions: int
    notes: str | None
    created_at: datetime
    package: DesignPackage | None


class DesignDeliveryFile(TypedDict):
    """design_delivery_files table row. Immutable once created.

    file_url holds the storage path inside the design-files bucket, not a URL.
    """

    id: UUID
    delivery_id: UUID
    file_name: str
    file_url: str
    file_type: str | None
    created_at: datetime


class DesignDelivery(TypedDict, total=False):
    """design_deliveries table row with embedded files."""

    id: UUID
    order_id: UUID
    version_number: int
    status: DeliveryStatus
    delivery_notes: str | None
    created_at: datetime
    files: list[DesignDeliveryFile]


class DesignFeedback(TypedDict):
    """design_feedback table row. Append-only."""

    id: UUID
    delivery_id: UUID
    user_id: UUID
    feedback_type: FeedbackType
    comment: str | None
    created_at: datetime


class ActionLogCreate(TypedDict):
    """Row inserted into action_logs by the audit service."""

    user_id: str
    user_email: str
    action_type: str
    entity_type: str
    entity_id: str | None
    entity_name: str | None
    description: str
    old_value: dict[str, Any] | None
    new_value: dict[str, Any] | None
    metadata: dict[str, Any]
