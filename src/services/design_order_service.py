"""Design order lifecycle: client reads, approve/revise, downloads and admin deliveries."""

import logging
from dataclasses import dataclass
from typing import Any, NoReturn
from uuid import UUID, uuid4

from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.middleware.error_handler import (
    APIError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.core.retry import execute_read, execute_write
from src.core.supabase import get_supabase_client
from src.models.design_order import DesignOrderStatus
from src.schemas.auth import UserContext
from src.schemas.design_order import OrderListFilter
from src.services.audit_service import AuditService
from src.services.notification_service import NotificationService
from src.services.order_state_machine import is_terminal, validate_delivery, validate_transition
from src.services.profile_service import ProfileService
from src.services.status_projection import (
    MAX_DELIVERIES,
    StatusProjection,
    delivery_label,
    is_order_complete,
    project_order,
)
from src.services.storage_service import StorageService, delivery_file_path

logger = logging.getLogger(__name__)

ORDER_SELECT = "*, package:design_packages(id, name, price, description, category:design_service_categories(name))"
DELIVERY_SELECT = "*, files:design_delivery_files(*)"
ADMIN_DELIVERY_SELECT = "*, files:design_delivery_files(*), feedback:design_feedback(*)"
RECOMMENDED_LIMIT = 6

ORDER_NOT_FOUND = "Pedido não encontrado"
FILE_NOT_FOUND = "Arquivo não encontrado"

# SQLSTATEs raised by the lifecycle functions in supabase/migrations
RPC_ERRORS: dict[str, type[APIError]] = {
    "PT404": NotFoundError,
    "PT409": ConflictError,
    "PT422": ValidationError,
}


@dataclass
class OrderView:
    """Order row, its deliveries and the projection computed from both."""

    order: dict[str, Any]
    deliveries: list[dict[str, Any]]
    projection: StatusProjection

    @property
    def package_name(self) -> str:
        package = self.order.get("package") or {}
        return package.get("name") or "Pacote de design"


@dataclass
class UploadedFile:
    """File received by the admin delivery upload."""

    file_name: str
    content: bytes
    content_type: str | None


def _raise_rpc_error(error: PostgrestAPIError, fallback_message: str) -> NoReturn:
    """Translate a lifecycle function error into an API error."""
    error_class = RPC_ERRORS.get(error.code or "")
    if error_class is None:
        raise error
    raise error_class(error.message or fallback_message) from error


def _single_row(data: Any) -> dict[str, Any]:
    """RPCs returning a composite come back as a dict or a one-element list."""
    if isinstance(data, list):
        return data[0]
    return data


def _closed_gate_message(view: OrderView) -> str:
    if view.projection.is_order_complete:
        return "Pedido já concluído"
    if is_terminal(view.order["status"]):
        return "Pedido cancelado"
    return "Nenhuma entrega aguardando aprovação"


def _delivery_count(order: dict[str, Any]) -> int:
    counts = order.get("deliveries") or []
    return counts[0].get("count", 0) if counts else 0


def matches_filter(order: dict[str, Any], filter: OrderListFilter) -> bool:
    """Whether a listed order belongs to a tab.

    'completed' keeps orders that display as completed, 'active' keeps the
    rest minus cancelled ones.
    """
    finished = order["display_status"] == DesignOrderStatus.COMPLETED
    if filter == "completed":
        return finished
    if filter == "active":
        return not finished and order["status"] != DesignOrderStatus.CANCELLED
    return True


class DesignOrderService:
    """Service for the design order lifecycle."""

    def __init__(self) -> None:
        """Initialize design order service with Supabase client and collaborators."""
        self.client = get_supabase_client()
        self.profiles = ProfileService()
        self.notifications = NotificationService()
        self.audit = AuditService()
        self.storage = StorageService()

    # Reads

    async def get_order(self, order_id: UUID, client_id: UUID | None = None) -> dict[str, Any] | None:
        """Get an order with its package.

        Args:
            order_id: The order's UUID.
            client_id: Owning client; None skips the ownership filter (admin).

        Returns:
            dict | None: The order or None if not found.
        """
        query = self.client.table("design_orders").select(ORDER_SELECT).eq("id", str(order_id))
        if client_id is not None:
            query = query.eq("client_id", str(client_id))
        response = execute_read(query.maybe_single())
        return response.data if response and response.data else None

    async def get_deliveries(self, order_id: UUID, with_feedback: bool = False) -> list[dict[str, Any]]:
        """Get all deliveries of an order, newest version first."""
        response = execute_read(
            self.client.table("design_deliveries")
            .select(ADMIN_DELIVERY_SELECT if with_feedback else DELIVERY_SELECT)
            .eq("order_id", str(order_id))
            .order("version_number", desc=True)
        )
        return response.data or []

    async def get_order_view(self, order_id: UUID, client_id: UUID | None = None) -> OrderView:
        """Load order and deliveries and project them.

        Raises:
            NotFoundError: If the order does not exist for this client.
        """
        order = await self.get_order(order_id, client_id)
        if not order:
            raise NotFoundError(ORDER_NOT_FOUND)
        deliveries = await self.get_deliveries(order_id, with_feedback=client_id is None)
        return OrderView(order=order, deliveries=deliveries, projection=project_order(order, deliveries))

    async def list_orders(self, client_id: UUID, filter: OrderListFilter = "all") -> list[dict[str, Any]]:
        """List the client's paid orders, newest first.

        Each row gets the computed delivery_count, is_order_complete and
        display_status.
        """
        response = execute_read(
            self.client.table("design_orders")
            .select(f"{ORDER_SELECT}, deliveries:design_deliveries(count)")
            .eq("client_id", str(client_id))
            .eq("payment_status", "paid")
            .order("created_at", desc=True)
        )

        orders = []
        for order in response.data or []:
            count = _delivery_count(order)
            complete = is_order_complete(count, order["status"])
            order["delivery_count"] = count
            order["is_order_complete"] = complete
            order["display_status"] = DesignOrderStatus.COMPLETED if complete else DesignOrderStatus(order["status"])
            if matches_filter(order, filter):
                orders.append(order)
        return orders

    async def get_recommended_packages(self, exclude_package_id: UUID | str | None) -> list[dict[str, Any]]:
        """Active packages to suggest once an order is complete."""
        query = (
            self.client.table("design_packages")
            .select("id, name, price, description, category:design_service_categories(name)")
            .eq("is_active", True)
        )
        if exclude_package_id:
            query = query.neq("id", str(exclude_package_id))
        response = execute_read(query.limit(RECOMMENDED_LIMIT))
        return response.data or []

    # Client actions

    async def approve(self, order_id: UUID, user: UserContext) -> OrderView:
        """Approve the latest delivery and finalize the order.

        Args:
            order_id: The order's UUID.
            user: The owning client.

        Returns:
            OrderView: The refreshed order.

        Raises:
            NotFoundError: If the order does not belong to the client.
            ConflictError: If the order cannot be approved right now.
        """
        view = await self.get_order_view(order_id, user.user_id)
        projection = view.projection
        if not projection.can_approve:
            raise ConflictError(_closed_gate_message(view))
        validate_transition(view.order["status"], DesignOrderStatus.APPROVED)

        try:
            execute_write(
                self.client.rpc(
                    "approve_design_delivery",
                    {
                        "p_order_id": str(order_id),
                        "p_delivery_id": projection.latest_delivery_id,
                        "p_user_id": str(user.user_id),
                    },
                )
            )
        except PostgrestAPIError as e:
            logger.error("Erro ao aprovar pedido %s: %s", order_id, e.message)
            _raise_rpc_error(e, "Erro ao aprovar pedido")

        logger.info("Order %s approved by %s", order_id, user.user_id)

        identity = await self.profiles.resolve_identity(user.user_id, user.email)
        await self.notifications.notify_design_order_approved(
            identity.client_name,
            identity.company_name,
            order_id,
            view.package_name,
            acting_user_id=str(user.user_id),
        )
        return await self.get_order_view(order_id, user.user_id)

    async def request_revision(self, order_id: UUID, user: UserContext, comment: str) -> OrderView:
        """Reject the latest delivery with a comment and spend one revision.

        Raises:
            ValidationError: If the comment is blank.
            NotFoundError: If the order does not belong to the client.
            ConflictError: If no revision can be requested right now.
        """
        comment = comment.strip()
        if not comment:
            raise ValidationError("Descreva as correções desejadas")

        view = await self.get_order_view(order_id, user.user_id)
        projection = view.projection
        if not projection.can_request_revision:
            if projection.can_approve:
                raise ConflictError(
                    f"Limite de revisões atingido ({projection.revisions_used}/{projection.max_revisions})"
                )
            raise ConflictError(_closed_gate_message(view))
        validate_transition(view.order["status"], DesignOrderStatus.REVISION_REQUESTED)

        try:
            execute_write(
                self.client.rpc(
                    "request_design_revision",
                    {
                        "p_order_id": str(order_id),
                        "p_delivery_id": projection.latest_delivery_id,
                        "p_user_id": str(user.user_id),
                        "p_comment": comment,
                    },
                )
            )
        except PostgrestAPIError as e:
            logger.error("Erro ao solicitar correção no pedido %s: %s", order_id, e.message)
            _raise_rpc_error(e, "Erro ao solicitar correção")

        logger.info("Revision requested on order %s by %s", order_id, user.user_id)

        identity = await self.profiles.resolve_identity(user.user_id, user.email)
        await self.notifications.notify_design_order_revision_requested(
            identity.client_name,
            identity.company_name,
            order_id,
            view.package_name,
            comment,
            acting_user_id=str(user.user_id),
        )
        return await self.get_order_view(order_id, user.user_id)

    async def get_delivery_file(self, order_id: UUID, file_id: UUID) -> dict[str, Any] | None:
        """Get a file row if it belongs to a delivery of the order."""
        response = execute_read(
            self.client.table("design_delivery_files")
            .select("id, file_name, file_url, delivery:design_deliveries!inner(order_id)")
            .eq("id", str(file_id))
            .eq("delivery.order_id", str(order_id))
            .maybe_single()
        )
        return response.data if response and response.data else None

    async def create_download_url(
        self,
        order_id: UUID,
        file_id: UUID,
        client_id: UUID | None = None,
    ) -> tuple[str, dict[str, Any]]:
        """Sign a short-lived URL for a delivery file.

        Args:
            order_id: The order's UUID.
            file_id: The design_delivery_files row.
            client_id: Owning client; None for admins.

        Returns:
            tuple: (signed URL, file row).

        Raises:
            NotFoundError: If the order or file is not visible to the caller.
            StorageError: If storage refuses to sign the path.
        """
        order = await self.get_order(order_id, client_id)
        if not order:
            raise NotFoundError(ORDER_NOT_FOUND)

        file = await self.get_delivery_file(order_id, file_id)
        if not file:
            raise NotFoundError(FILE_NOT_FOUND)

        url = await self.storage.create_signed_url(file["file_url"])
        return url, file

    # Admin actions

    async def create_delivery(
        self,
        order_id: UUID,
        notes: str | None,
        files: list[UploadedFile],
        actor: UserContext,
    ) -> dict[str, Any]:
        """Attach a new delivery version and tell the client.

        Files are uploaded first under a fresh delivery id. create_design_delivery
        then inserts the delivery, its file rows and the delivered status in one
        transaction, assigning the version as the current count plus one. If an
        upload or the function call fails, the objects already uploaded are
        removed and no delivery row exists.

        Returns:
            dict: The delivery row with its files.

        Raises:
            NotFoundError: If the order does not exist.
            ValidationError: If no file was sent.
            ConflictError: If the order does not accept deliveries.
            StorageError: If a file upload fails.
        """
        if not files:
            raise ValidationError("Envie pelo menos um arquivo")

        view = await self.get_order_view(order_id)
        validate_delivery(view.order["status"])
        if view.projection.delivery_count >= MAX_DELIVERIES:
            raise ConflictError("Pedido já finalizado")

        delivery_id = str(uuid4())
        file_rows: list[dict[str, Any]] = []
        try:
            for upload in files:
                path = delivery_file_path(order_id, delivery_id, upload.file_name)
                await self.storage.upload(path, upload.content, upload.content_type)
                file_rows.append({
                    "file_name": upload.file_name,
                    "file_url": path,
                    "file_type": upload.content_type,
                })
            response = execute_write(
                self.client.rpc(
                    "create_design_delivery",
                    {
                        "p_order_id": str(order_id),
                        "p_delivery_id": delivery_id,
                        "p_delivery_notes": notes or None,
                        "p_files": file_rows,
                    },
                )
            )
        except PostgrestAPIError as e:
            logger.error("Error creating delivery for order %s: %s", order_id, e.message)
            await self.storage.remove([row["file_url"] for row in file_rows])
            _raise_rpc_error(e, "Erro ao criar entrega")
        except Exception:
            await self.storage.remove([row["file_url"] for row in file_rows])
            raise

        delivery = _single_row(response.data)
        version = delivery["version_number"]
        logger.info("Delivery %s (v%d) created for order %s", delivery["id"], version, order_id)

        await self.audit.log_design_order_action(
            actor,
            order_id,
            view.package_name,
            "send",
            f"Entrega {delivery_label(version)} enviada com {len(file_rows)} arquivo(s)",
            old_value={"status": view.order["status"]},
            new_value={"status": DesignOrderStatus.DELIVERED.value, "version_number": version},
            metadata={"delivery_id": str(delivery["id"])},
        )

        identity = await self.profiles.resolve_identity(view.order["client_id"])
        await self.notifications.notify_design_order_delivered(
            view.order["client_id"],
            identity.company_name,
            order_id,
            view.package_name,
            version,
            acting_user_id=str(actor.user_id),
        )
        return delivery

    async def update_status(
        self,
        order_id: UUID,
        new_status: DesignOrderStatus,
        actor: UserContext,
    ) -> dict[str, Any]:
        """Move an order to a new status if the transition is allowed.

        The update is conditional on the status read beforehand, so two
        admins racing on the same order cannot both apply a change.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidTransitionError: If the transition is not allowed.
            ConflictError: If the status changed concurrently.
        """
        order = await self.get_order(order_id)
        if not order:
            raise NotFoundError(ORDER_NOT_FOUND)

        old_status = DesignOrderStatus(order["status"])
        validate_transition(old_status, new_status)

        response = execute_write(
            self.client.table("design_orders")
            .update({"status": new_status.value})
            .eq("id", str(order_id))
            .eq("status", old_status.value)
        )
        if not response.data:
            raise ConflictError("O status do pedido foi alterado por outra pessoa. Recarregue a página.")

        logger.info("Order %s status %s -> %s by %s", order_id, old_status.value, new_status.value, actor.user_id)

        package_name = (order.get("package") or {}).get("name") or "Pacote de design"
        await self.audit.log_design_order_action(
            actor,
            order_id,
            package_name,
            "status_change",
            f"Status alterado de '{old_status.value}' para '{new_status.value}'",
            old_value={"status": old_status.value},
            new_value={"status": new_status.value},
        )

        updated = response.data[0]
        updated["package"] = order.get("package")
        return updated
