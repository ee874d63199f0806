"""Client design order API routes."""

from uuid import UUID

from fastapi import APIRouter, Query

from src.api.deps import CurrentUser
from src.core.config import get_settings
from src.schemas.design_order import (
    EMPTY_DELIVERIES_MESSAGE,
    DeliveryResponse,
    DesignOrderDetailResponse,
    DesignOrderListItem,
    DesignOrderListResponse,
    DesignOrderResponse,
    DownloadUrlResponse,
    OrderListFilter,
    OrderProgress,
    PackageSummary,
    RevisionRequest,
)
from src.services.design_order_service import DesignOrderService, OrderView, matches_filter
from src.services.status_projection import order_max_revisions, progress_percent

router = APIRouter(prefix="/design-orders", tags=["design-orders"])


async def build_detail_response(view: OrderView, service: DesignOrderService) -> DesignOrderDetailResponse:
    """Assemble the client order page from an order view."""
    projection = view.projection
    views_by_id = {v.delivery_id: v for v in projection.deliveries}

    recommended = []
    if projection.is_order_complete:
        packages = await service.get_recommended_packages(view.order.get("package_id"))
        recommended = [PackageSummary.from_row(p) for p in packages]

    return DesignOrderDetailResponse(
        order=DesignOrderResponse.from_row(view.order),
        progress=OrderProgress.from_projection(projection),
        deliveries=[DeliveryResponse.from_row(d, views_by_id[str(d["id"])]) for d in view.deliveries],
        empty_state_message=None if projection.has_deliveries else EMPTY_DELIVERIES_MESSAGE,
        recommended_packages=recommended,
    )


@router.get(
    "",
    response_model=DesignOrderListResponse,
    summary="List my design orders",
    description="Returns the authenticated client's paid design orders, newest first.",
)
async def list_design_orders(
    user: CurrentUser,
    filter: OrderListFilter = Query(default="all", description="all, active or completed"),
) -> DesignOrderListResponse:
    """List the client's design orders.

    Counters are computed over all orders so the tabs stay stable while
    filtering.

    Args:
        user: The authenticated user context.
        filter: Which tab to return.

    Returns:
        DesignOrderListResponse: Orders plus active/completed counts.
    """
    service = DesignOrderService()
    orders = await service.list_orders(user.user_id)

    active_count = sum(1 for o in orders if matches_filter(o, "active"))
    completed_count = sum(1 for o in orders if matches_filter(o, "completed"))

    items = [
        DesignOrderListItem(
            id=o["id"],
            status=o["status"],
            display_status=o["display_status"],
            is_order_complete=o["is_order_complete"],
            delivery_count=o["delivery_count"],
            progress_percent=progress_percent(o["display_status"]),
            revisions_used=o.get("revisions_used") or 0,
            max_revisions=order_max_revisions(o),
            created_at=o["created_at"],
            package=PackageSummary.from_row(o["package"]) if o.get("package") else None,
        )
        for o in orders
        if matches_filter(o, filter)
    ]
    return DesignOrderListResponse(items=items, active_count=active_count, completed_count=completed_count)


@router.get(
    "/{order_id}",
    response_model=DesignOrderDetailResponse,
    summary="Get a design order",
    description="Returns the order, its deliveries newest first and the derived progress.",
    responses={404: {"description": "Order not found"}},
)
async def get_design_order(order_id: UUID, user: CurrentUser) -> DesignOrderDetailResponse:
    """Get one of the client's design orders.

    Args:
        order_id: The order's UUID.
        user: The authenticated user context.

    Returns:
        DesignOrderDetailResponse: Order page payload.
    """
    service = DesignOrderService()
    view = await service.get_order_view(order_id, user.user_id)
    return await build_detail_response(view, service)


@router.post(
    "/{order_id}/approve",
    response_model=DesignOrderDetailResponse,
    summary="Approve the latest delivery",
    description="Approves the delivery awaiting review and finalizes the order.",
    responses={
        404: {"description": "Order not found"},
        409: {"description": "Order cannot be approved in its current state"},
    },
)
async def approve_design_order(order_id: UUID, user: CurrentUser) -> DesignOrderDetailResponse:
    """Approve the latest delivery.

    Args:
        order_id: The order's UUID.
        user: The authenticated user context.

    Returns:
        DesignOrderDetailResponse: The refreshed order page payload.
    """
    service = DesignOrderService()
    view = await service.approve(order_id, user)
    return await build_detail_response(view, service)


@router.post(
    "/{order_id}/revisions",
    response_model=DesignOrderDetailResponse,
    summary="Request a revision",
    description="Rejects the latest delivery with a comment and uses one revision.",
    responses={
        404: {"description": "Order not found"},
        409: {"description": "No revision can be requested right now"},
        422: {"description": "Empty comment"},
    },
)
async def request_design_revision(
    order_id: UUID,
    data: RevisionRequest,
    user: CurrentUser,
) -> DesignOrderDetailResponse:
    """Request a revision of the latest delivery.

    Args:
        order_id: The order's UUID.
        data: Revision comment.
        user: The authenticated user context.

    Returns:
        DesignOrderDetailResponse: The refreshed order page payload.
    """
    service = DesignOrderService()
    view = await service.request_revision(order_id, user, data.comment)
    return await build_detail_response(view, service)


@router.get(
    "/{order_id}/files/{file_id}/download",
    response_model=DownloadUrlResponse,
    summary="Get a download link",
    description="Returns a signed URL for a delivery file, valid for one hour.",
    responses={
        404: {"description": "Order or file not found"},
        502: {"description": "Storage could not sign the URL"},
    },
)
async def download_delivery_file(order_id: UUID, file_id: UUID, user: CurrentUser) -> DownloadUrlResponse:
    """Sign a download URL for one of the client's delivery files."""
    service = DesignOrderService()
    url, file = await service.create_download_url(order_id, file_id, user.user_id)
    return DownloadUrlResponse(
        url=url,
        file_name=file["file_name"],
        expires_in=get_settings().signed_url_expires_in,
    )
