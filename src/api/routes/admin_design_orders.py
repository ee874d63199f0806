"""Admin design order and notification queue API routes."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Form, Query, UploadFile, status

from src.api.deps import AdminUser
from src.api.middleware.error_handler import APIError
from src.core.config import get_settings
from src.schemas.design_order import (
    AdminDeliveryResponse,
    AdminDesignOrderDetailResponse,
    AdminDesignOrderResponse,
    DeliveryCreatedResponse,
    DeliveryFileResponse,
    DesignOrderResponse,
    DownloadUrlResponse,
    OrderProgress,
    QueueRunResponse,
    StatusUpdateRequest,
)
from src.services.design_order_service import DesignOrderService, UploadedFile
from src.services.notification_queue_service import NotificationQueueService
from src.services.notification_service import NotificationService
from src.services.order_state_machine import can_receive_delivery
from src.services.profile_service import ProfileService
from src.services.status_projection import MAX_DELIVERIES, delivery_label

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/design-orders/{order_id}",
    response_model=AdminDesignOrderDetailResponse,
    summary="Get a design order (admin)",
    description="Returns any order with its deliveries, files and client feedback.",
    responses={
        403: {"description": "Not an administrator"},
        404: {"description": "Order not found"},
    },
)
async def get_admin_design_order(order_id: UUID, admin: AdminUser) -> AdminDesignOrderDetailResponse:
    """Get the admin view of an order.

    Args:
        order_id: The order's UUID.
        admin: The authenticated administrator.

    Returns:
        AdminDesignOrderDetailResponse: Order, progress and deliveries with feedback.
    """
    service = DesignOrderService()
    view = await service.get_order_view(order_id)
    identity = await ProfileService().resolve_identity(view.order["client_id"])
    projection = view.projection
    views_by_id = {v.delivery_id: v for v in projection.deliveries}

    next_version = None
    if can_receive_delivery(view.order["status"]) and projection.delivery_count < MAX_DELIVERIES:
        next_version = projection.delivery_count + 1

    return AdminDesignOrderDetailResponse(
        order=AdminDesignOrderResponse.from_row(
            view.order,
            client_id=view.order["client_id"],
            client_name=identity.client_name,
            company_name=identity.company_name,
        ),
        progress=OrderProgress.from_projection(projection),
        deliveries=[AdminDeliveryResponse.from_row(d, views_by_id[str(d["id"])]) for d in view.deliveries],
        next_version=next_version,
    )


@router.post(
    "/design-orders/{order_id}/deliveries",
    response_model=DeliveryCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a delivery",
    description="Creates the next delivery version, uploads its files and notifies the client.",
    responses={
        403: {"description": "Not an administrator"},
        404: {"description": "Order not found"},
        409: {"description": "Order does not accept deliveries"},
        413: {"description": "File too large"},
        502: {"description": "Storage upload failed"},
    },
)
async def create_delivery(
    order_id: UUID,
    admin: AdminUser,
    files: Annotated[list[UploadFile], File(description="Delivery files")],
    notes: Annotated[str | None, Form(description="Notes shown to the client")] = None,
) -> DeliveryCreatedResponse:
    """Upload a new delivery version.

    Args:
        order_id: The order's UUID.
        admin: The authenticated administrator.
        files: One or more files.
        notes: Optional delivery notes.

    Returns:
        DeliveryCreatedResponse: The created delivery and its files.

    Raises:
        APIError: 413 if a file exceeds the upload size limit.
    """
    max_bytes = get_settings().max_upload_size_bytes
    uploads = []
    for upload in files:
        content = await upload.read()
        if len(content) > max_bytes:
            raise APIError(
                f"Arquivo {upload.filename} excede o limite de {get_settings().max_upload_size_mb}MB",
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                error_type="payload_too_large",
            )
        uploads.append(
            UploadedFile(
                file_name=upload.filename or "arquivo",
                content=content,
                content_type=upload.content_type,
            )
        )

    service = DesignOrderService()
    delivery = await service.create_delivery(order_id, notes, uploads, admin)
    return DeliveryCreatedResponse(
        id=delivery["id"],
        order_id=delivery["order_id"],
        version_number=delivery["version_number"],
        label=delivery_label(delivery["version_number"]),
        status=delivery["status"],
        files=[DeliveryFileResponse.model_validate(f) for f in delivery.get("files") or []],
    )


@router.patch(
    "/design-orders/{order_id}/status",
    response_model=DesignOrderResponse,
    summary="Change order status",
    description="Moves the order to a new status if the transition is allowed.",
    responses={
        403: {"description": "Not an administrator"},
        404: {"description": "Order not found"},
        409: {"description": "Transition not allowed or status changed concurrently"},
    },
)
async def update_design_order_status(
    order_id: UUID,
    data: StatusUpdateRequest,
    admin: AdminUser,
) -> DesignOrderResponse:
    """Change an order's status.

    Args:
        order_id: The order's UUID.
        data: Target status.
        admin: The authenticated administrator.

    Returns:
        DesignOrderResponse: The updated order.
    """
    service = DesignOrderService()
    order = await service.update_status(order_id, data.status, admin)
    return DesignOrderResponse.from_row(order)


@router.get(
    "/design-orders/{order_id}/files/{file_id}/download",
    response_model=DownloadUrlResponse,
    summary="Get a download link (admin)",
    description="Returns a signed URL for any delivery file, valid for one hour.",
)
async def admin_download_delivery_file(order_id: UUID, file_id: UUID, admin: AdminUser) -> DownloadUrlResponse:
    service = DesignOrderService()
    url, file = await service.create_download_url(order_id, file_id)
    return DownloadUrlResponse(
        url=url,
        file_name=file["file_name"],
        expires_in=get_settings().signed_url_expires_in,
    )


@router.post(
    "/notifications/process-queue",
    response_model=QueueRunResponse,
    summary="Process the email queue",
    description="Sends pending queued emails. Meant to be called by a scheduler.",
)
async def process_notification_queue(admin: AdminUser) -> QueueRunResponse:
    """Drain one batch of the notification queue.

    Args:
        admin: The authenticated administrator.

    Returns:
        QueueRunResponse: Counters for this run.
    """
    logger.info("Queue run triggered by %s", admin.user_id)
    result = await NotificationQueueService().process_queue()
    return QueueRunResponse(
        processed=result.processed,
        sent=result.sent,
        skipped_duplicate=result.skipped_duplicate,
        failed=result.failed,
        retried=result.retried,
        errors=result.errors,
    )


@router.get(
    "/notifications/queue",
    summary="List queued emails",
    description="Recent notification_queue rows for monitoring.",
)
async def list_notification_queue(
    admin: AdminUser,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> list[dict]:
    return await NotificationService().list_queue(status=status_filter, limit=limit)
