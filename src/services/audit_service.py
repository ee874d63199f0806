"""Audit trail for admin actions on design orders."""

import logging
from typing import Any, Literal
from uuid import UUID

from src.core.retry import execute_write
from src.core.supabase import get_supabase_client
from src.models.design_order import ActionLogCreate
from src.schemas.auth import UserContext

logger = logging.getLogger(__name__)

ActionType = Literal["create", "update", "delete", "status_change", "approve", "reject", "upload", "download", "send"]


class AuditService:
    """Writes rows to action_logs. Never raises."""

    def __init__(self) -> None:
        self.client = get_supabase_client()

    async def log_action(
        self,
        actor: UserContext,
        action_type: ActionType,
        entity_type: str,
        description: str,
        entity_id: str | None = None,
        entity_name: str | None = None,
        old_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        row: ActionLogCreate = {
            "user_id": str(actor.user_id),
            "user_email": actor.email or "unknown",
            "action_type": action_type,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "entity_name": entity_name,
            "description": description,
            "old_value": old_value,
            "new_value": new_value,
            "metadata": metadata or {},
        }
        try:
            execute_write(self.client.table("action_logs").insert(row))
        except Exception as e:
            logger.error("Failed to log %s on %s %s: %s", action_type, entity_type, entity_id, e)

    async def log_design_order_action(
        self,
        actor: UserContext,
        order_id: UUID | str,
        order_name: str,
        action_type: ActionType,
        description: str,
        old_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Log an action against a design order."""
        await self.log_action(
            actor,
            action_type,
            "design_order",
            description,
            entity_id=str(order_id),
            entity_name=order_name,
            old_value=old_value,
            new_value=new_value,
            metadata=metadata,
        )
