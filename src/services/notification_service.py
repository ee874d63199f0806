"""In-app notifications and queued emails about design order events.

Every public notify_* method is fire-and-forget: failures are logged and
swallowed so the lifecycle action that triggered them still succeeds.
"""

import logging
from typing import Any
from uuid import UUID

from src.core.config import get_settings
from src.core.retry import execute_read, execute_write
from src.core.supabase import get_supabase_client
from src.services.profile_service import FALLBACK_NAME, ProfileService
from src.services.status_projection import delivery_label

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE = "design_order"
COMMENT_PREVIEW_LENGTH = 80


def build_dedup_key(template_slug: str, recipients: list[str], reference_id: str | None) -> str | None:
    """Key the queue worker uses to drop repeated sends of the same email."""
    if not reference_id:
        return None
    return f"{template_slug}:{','.join(sorted(recipients))}:{reference_id}"


def preview_comment(comment: str) -> str:
    if len(comment) <= COMMENT_PREVIEW_LENGTH:
        return comment
    return f"{comment[:COMMENT_PREVIEW_LENGTH]}..."


def delivered_template(version_number: int) -> tuple[str, str, str]:
    """Pick (email template, title, message pattern) for a delivery version."""
    if version_number == 4:
        return (
            "design_order_bonus_delivered",
            "🎁 Entrega bônus disponível!",
            'Bônus Final de "{package_name}" está disponível.',
        )
    if version_number == 5:
        return (
            "design_order_bonus_delivered",
            "🎁 Entrega bônus extra disponível!",
            'Bônus Extra de "{package_name}" está disponível.',
        )
    if version_number >= 6:
        return (
            "design_order_final_delivered",
            "🎉 Pedido finalizado!",
            'O pedido "{package_name}" foi concluído com sucesso.',
        )
    return (
        "design_order_delivered",
        "Nova versão disponível!",
        '{label} de "{package_name}" está pronta para revisão.',
    )


class NotificationService:
    """Dispatches design order notifications to admins and clients."""

    def __init__(self) -> None:
        """Initialize notification service with Supabase client."""
        self.client = get_supabase_client()
        self.production_url = get_settings().production_url.rstrip("/")

    async def get_admin_ids(self) -> list[str]:
        """Admin user IDs via the get_admin_user_ids security-definer RPC."""
        try:
            response = execute_read(self.client.rpc("get_admin_user_ids"))
        except Exception as e:
            logger.error("Error getting admin IDs: %s", e)
            return []
        return [str(admin_id) for admin_id in response.data or []]

    async def create_notifications(
        self,
        user_ids: list[str],
        title: str,
        message: str | None,
        reference_id: str,
    ) -> None:
        """Batch insert one in-app notification per user."""
        if not user_ids:
            return
        records = [
            {
                "user_id": user_id,
                "type": NOTIFICATION_TYPE,
                "title": title,
                "message": message,
                "reference_id": reference_id,
                "reference_type": NOTIFICATION_TYPE,
            }
            for user_id in user_ids
        ]
        execute_write(self.client.table("notifications").insert(records))

    async def queue_email(
        self,
        template_slug: str,
        recipients: list[str],
        variables: dict[str, str],
        reference_id: str | None = None,
        created_by: str | None = None,
    ) -> bool:
        """Queue an email in notification_queue, sending directly if that fails.

        Args:
            template_slug: Email template identifier.
            recipients: Recipient auth user IDs.
            variables: Template variables.
            reference_id: Order the email is about; drives deduplication.
            created_by: Acting user ID.

        Returns:
            bool: True if the email was queued or sent.
        """
        dedup_key = build_dedup_key(template_slug, recipients, reference_id)
        row = {
            "template_slug": template_slug,
            "recipients": recipients,
            "variables": variables,
            "dedup_key": dedup_key,
            "metadata": {"triggered_by": "app", "reference_id": reference_id},
            "created_by": created_by,
        }
        try:
            execute_write(self.client.table("notification_queue").insert(row))
            logger.info("Queued %s for %d recipient(s)", template_slug, len(recipients))
            return True
        except Exception as e:
            logger.error("Failed to queue %s: %s", template_slug, e)
            return await self.send_email_direct(template_slug, recipients, variables, dedup_key)

    async def send_email_direct(
        self,
        template_slug: str,
        recipients: list[str],
        variables: dict[str, str],
        dedup_key: str | None,
    ) -> bool:
        """Invoke the send-email edge function directly."""
        try:
            self.client.functions.invoke(
                "send-email",
                invoke_options={
                    "body": {
                        "template_slug": template_slug,
                        "to": recipients,
                        "variables": variables,
                        "triggered_by": "app",
                        "metadata": {"dedup_key": dedup_key} if dedup_key else {},
                    }
                },
            )
        except Exception as e:
            logger.error("Direct send of %s failed: %s", template_slug, e)
            return False
        logger.info("Sent %s directly", template_slug)
        return True

    async def notify_design_order_approved(
        self,
        client_name: str,
        company_name: str,
        order_id: UUID | str,
        package_name: str,
        acting_user_id: str | None = None,
    ) -> None:
        """Tell every admin that a client approved a delivery."""
        order_id = str(order_id)
        try:
            admin_ids = await self.get_admin_ids()
            if not admin_ids:
                logger.warning("No admins to notify about approval of order %s", order_id)
                return

            await self.create_notifications(
                admin_ids,
                title=f"{company_name} aprovou o design!",
                message=f'O cliente aprovou "{package_name}".',
                reference_id=order_id,
            )
            await self.queue_email(
                "design_order_approved",
                admin_ids,
                {
                    "client_name": client_name,
                    "company_name": company_name,
                    "package_name": package_name,
                    "order_url": f"{self.production_url}/admin/design/{order_id}",
                },
                reference_id=order_id,
                created_by=acting_user_id,
            )
        except Exception as e:
            logger.error("Failed to notify approval of order %s: %s", order_id, e)

    async def notify_design_order_revision_requested(
        self,
        client_name: str,
        company_name: str,
        order_id: UUID | str,
        package_name: str,
        comment: str,
        acting_user_id: str | None = None,
    ) -> None:
        """Tell every admin that a client asked for a revision."""
        order_id = str(order_id)
        try:
            admin_ids = await self.get_admin_ids()
            if not admin_ids:
                logger.warning("No admins to notify about revision of order %s", order_id)
                return

            await self.create_notifications(
                admin_ids,
                title=f"{company_name} solicitou revisão",
                message=f"{package_name}: {preview_comment(comment)}",
                reference_id=order_id,
            )
            await self.queue_email(
                "design_order_revision_requested",
                admin_ids,
                {
                    "client_name": client_name,
                    "company_name": company_name,
                    "package_name": package_name,
                    "comment": comment,
                    "order_url": f"{self.production_url}/admin/design/{order_id}",
                },
                reference_id=order_id,
                created_by=acting_user_id,
            )
        except Exception as e:
            logger.error("Failed to notify revision request on order %s: %s", order_id, e)

    async def notify_design_order_delivered(
        self,
        client_id: UUID | str,
        company_name: str,
        order_id: UUID | str,
        package_name: str,
        version_number: int,
        acting_user_id: str | None = None,
    ) -> None:
        """Tell the client a new delivery version is ready."""
        client_id, order_id = str(client_id), str(order_id)
        label = delivery_label(version_number)
        template_slug, title, message = delivered_template(version_number)
        try:
            identity = await ProfileService().resolve_identity(UUID(client_id))
            client_name = identity.client_name if identity.client_name != FALLBACK_NAME else company_name

            await self.create_notifications(
                [client_id],
                title=title,
                message=message.format(label=label, package_name=package_name),
                reference_id=order_id,
            )
            await self.queue_email(
                template_slug,
                [client_id],
                {
                    "client_name": client_name,
                    "company_name": company_name,
                    "package_name": package_name,
                    "version_number": str(version_number),
                    "version_label": label,
                    "order_url": f"{self.production_url}/cliente/design/{order_id}",
                },
                reference_id=order_id,
                created_by=acting_user_id,
            )
        except Exception as e:
            logger.error("Failed to notify client %s about delivery on order %s: %s", client_id, order_id, e)

    async def list_queue(self, status: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        """Recent notification_queue rows for the admin monitor."""
        query = self.client.table("notification_queue").select("*")
        if status:
            query = query.eq("status", status)
        response = execute_read(query.order("created_at", desc=True).limit(limit))
        return response.data or []
