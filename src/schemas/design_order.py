"""Design order Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.design_order import DeliveryStatus, DesignOrderStatus, FeedbackType
from src.services.status_projection import DeliveryView, StatusProjection, order_max_revisions

OrderListFilter = Literal["all", "active", "completed"]

EMPTY_DELIVERIES_MESSAGE = "Nenhuma entrega ainda"


class PackageSummary(BaseModel):
    """Design package embedded in order responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = Field(default=None, description="Package ID")
    name: str = Field(description="Package name")
    price: float | None = Field(default=None, description="Package price in BRL")
    description: str | None = Field(default=None, description="Package description")
    category_name: str | None = Field(default=None, description="Service category name")

    @classmethod
    def from_row(cls, package: dict[str, Any]) -> "PackageSummary":
        """Build from a design_packages row with an embedded category."""
        category = package.get("category") or {}
        return cls(
            id=package.get("id"),
            name=package["name"],
            price=package.get("price"),
            description=package.get("description"),
            category_name=category.get("name"),
        )


class DeliveryFileResponse(BaseModel):
    """Attached output file. Download through the signed URL endpoint."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="File ID")
    file_name: str = Field(description="Original file name")
    file_type: str | None = Field(default=None, description="MIME type")


class DeliveryBadgeSchema(BaseModel):
    """Highlight shown next to a delivery."""

    model_config = ConfigDict(from_attributes=True)

    label: str = Field(description="Badge text")
    variant: str = Field(description="Badge style key")


class DeliveryResponse(BaseModel):
    """One delivery version with its derived label."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Delivery ID")
    version_number: int = Field(ge=1, description="Version number, 1 is the first delivery")
    status: DeliveryStatus = Field(description="Review status")
    delivery_notes: str | None = Field(default=None, description="Notes from the designer")
    created_at: datetime = Field(description="Delivery timestamp")
    label: str = Field(description="Human label, e.g. 'Versão 2' or 'Bônus Extra'")
    badge: DeliveryBadgeSchema | None = Field(default=None, description="Optional highlight")
    is_latest: bool = Field(description="Whether this is the most recent version")
    files: list[DeliveryFileResponse] = Field(default_factory=list, description="Attached files")

    @classmethod
    def from_row(cls, delivery: dict[str, Any], view: DeliveryView, **extra: Any) -> "DeliveryResponse":
        """Combine a design_deliveries row with its projected label and badge."""
        return cls(
            id=delivery["id"],
            version_number=delivery["version_number"],
            status=delivery["status"],
            delivery_notes=delivery.get("delivery_notes"),
            created_at=delivery["created_at"],
            label=view.label,
            badge=DeliveryBadgeSchema(label=view.badge.label, variant=view.badge.variant) if view.badge else None,
            is_latest=view.is_latest,
            files=[DeliveryFileResponse.model_validate(f) for f in delivery.get("files") or []],
            **extra,
        )


class OrderProgress(BaseModel):
    """Completion flags and action gates derived from order and deliveries."""

    model_config = ConfigDict(from_attributes=True)

    delivery_count: int = Field(ge=0, description="Number of deliveries so far")
    is_order_complete: bool = Field(description="Standard deliveries reached or order approved")
    is_fully_finalized: bool = Field(description="Maximum deliveries reached")
    display_status: DesignOrderStatus = Field(description="Status to show ('completed' once complete)")
    can_approve: bool = Field(description="Approve action available")
    can_request_revision: bool = Field(description="Revision action available")
    revisions_used: int = Field(ge=0, description="Revisions already requested")
    max_revisions: int = Field(ge=0, description="Revision budget")
    revisions_remaining: int = Field(ge=0, description="Revisions left")

    @classmethod
    def from_projection(cls, projection: StatusProjection) -> "OrderProgress":
        return cls(
            delivery_count=projection.delivery_count,
            is_order_complete=projection.is_order_complete,
            is_fully_finalized=projection.is_fully_finalized,
            display_status=projection.display_status,
            can_approve=projection.can_approve,
            can_request_revision=projection.can_request_revision,
            revisions_used=projection.revisions_used,
            max_revisions=projection.max_revisions,
            revisions_remaining=projection.revisions_remaining,
        )


class DesignOrderResponse(BaseModel):
    """Design order as returned to the owning client."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order ID")
    status: DesignOrderStatus = Field(description="Stored order status")
    revisions_used: int = Field(description="Revisions already requested")
    max_revisions: int = Field(description="Revision budget")
    notes: str | None = Field(default=None, description="Client notes from checkout")
    created_at: datetime = Field(description="Creation timestamp")
    package: PackageSummary | None = Field(default=None, description="Purchased package")

    @classmethod
    def from_row(cls, order: dict[str, Any], **extra: Any) -> "DesignOrderResponse":
        package = order.get("package")
        return cls(
            id=order["id"],
            status=order["status"],
            revisions_used=order.get("revisions_used") or 0,
            max_revisions=order_max_revisions(order),
            notes=order.get("notes"),
            created_at=order["created_at"],
            package=PackageSummary.from_row(package) if package else None,
            **extra,
        )


class DesignOrderDetailResponse(BaseModel):
    """Everything the client order page needs in one payload."""

    model_config = ConfigDict(from_attributes=True)

    order: DesignOrderResponse
    progress: OrderProgress
    deliveries: list[DeliveryResponse] = Field(default_factory=list, description="Newest version first")
    empty_state_message: str | None = Field(default=None, description="Shown when there are no deliveries")
    recommended_packages: list[PackageSummary] = Field(
        default_factory=list,
        description="Upsell suggestions, only filled once the order is complete",
    )


class DesignOrderListItem(BaseModel):
    """Row of the client's order list."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: DesignOrderStatus
    display_status: DesignOrderStatus
    is_order_complete: bool
    delivery_count: int
    progress_percent: int = Field(ge=0, le=100)
    revisions_used: int
    max_revisions: int
    created_at: datetime
    package: PackageSummary | None = None


class DesignOrderListResponse(BaseModel):
    """Client order list with tab counters."""

    model_config = ConfigDict(from_attributes=True)

    items: list[DesignOrderListItem]
    active_count: int = Field(description="Orders still in progress")
    completed_count: int = Field(description="Orders considered complete")


class RevisionRequest(BaseModel):
    """Body of POST /design-orders/{id}/revisions."""

    comment: str = Field(min_length=1, max_length=5000, description="What should change")

    @field_validator("comment")
    @classmethod
    def comment_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Descreva as correções desejadas")
        return value.strip()


class DownloadUrlResponse(BaseModel):
    """Short-lived link to a delivery file."""

    url: str = Field(description="Signed URL, open in a new tab")
    file_name: str = Field(description="File name")
    expires_in: int = Field(description="Seconds until the URL stops working")


class FeedbackResponse(BaseModel):
    """Client decision on a delivery (admin view)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    feedback_type: FeedbackType
    comment: str | None = None
    created_at: datetime


class AdminDeliveryResponse(DeliveryResponse):
    """Delivery with the client's feedback history."""

    feedback: list[FeedbackResponse] = Field(default_factory=list)

    @classmethod
    def from_row(cls, delivery: dict[str, Any], view: DeliveryView, **extra: Any) -> "AdminDeliveryResponse":
        feedback = sorted(delivery.get("feedback") or [], key=lambda f: f["created_at"])
        return super().from_row(
            delivery,
            view,
            feedback=[FeedbackResponse.model_validate(f) for f in feedback],
            **extra,
        )


class AdminDesignOrderResponse(DesignOrderResponse):
    """Order as seen from the back office."""

    client_id: UUID = Field(description="Owning client")
    client_name: str = Field(description="Client display name")
    company_name: str = Field(description="Client company name")


class AdminDesignOrderDetailResponse(BaseModel):
    """Admin order page payload."""

    order: AdminDesignOrderResponse
    progress: OrderProgress
    deliveries: list[AdminDeliveryResponse] = Field(default_factory=list)
    next_version: int | None = Field(description="Version number the next upload gets, None when no more are allowed")


class StatusUpdateRequest(BaseModel):
    """Body of PATCH /admin/design-orders/{id}/status."""

    status: DesignOrderStatus = Field(description="Target status")


class DeliveryCreatedResponse(BaseModel):
    """Result of an admin delivery upload."""

    id: UUID
    order_id: UUID
    version_number: int
    label: str
    status: DeliveryStatus
    files: list[DeliveryFileResponse] = Field(default_factory=list)


class QueueRunResponse(BaseModel):
    """Result of one notification queue run."""

    processed: int
    sent: int
    skipped_duplicate: int
    failed: int
    retried: int
    errors: list[str] = Field(default_factory=list)
