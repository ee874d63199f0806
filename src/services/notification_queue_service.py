"""Worker that drains notification_queue and sends the emails via Resend."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from src.core.retry import execute_read, execute_write
from src.core.supabase import get_supabase_client
from src.services.email_service import EmailService
from src.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

BATCH_SIZE = 50
DEFAULT_MAX_ATTEMPTS = 3
DEDUP_WINDOW_MINUTES = 5


@dataclass
class QueueRunResult:
    """Counters for one processing run."""

    processed: int = 0
    sent: int = 0
    skipped_duplicate: int = 0
    failed: int = 0
    retried: int = 0
    errors: list[str] = field(default_factory=list)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class NotificationQueueService:
    """Processes pending notification_queue items oldest first."""

    def __init__(self) -> None:
        """Initialize queue service with Supabase, profile and email services."""
        self.client = get_supabase_client()
        self.profiles = ProfileService()
        self.email = EmailService()

    async def fetch_pending(self) -> list[dict[str, Any]]:
        response = execute_read(
            self.client.table("notification_queue")
            .select("*")
            .eq("status", "pending")
            .lt("attempts", DEFAULT_MAX_ATTEMPTS)
            .order("created_at", desc=False)
            .limit(BATCH_SIZE)
        )
        return response.data or []

    async def is_duplicate(self, item: dict[str, Any]) -> bool:
        """Whether an email with the same dedup key went out inside the window."""
        if not item.get("dedup_key"):
            return False
        window_start = (datetime.now(timezone.utc) - timedelta(minutes=DEDUP_WINDOW_MINUTES)).isoformat()
        response = execute_read(
            self.client.table("email_logs")
            .select("id")
            .eq("template_slug", item["template_slug"])
            .gte("created_at", window_start)
            .contains("metadata", {"dedup_key": item["dedup_key"]})
            .limit(1)
        )
        return bool(response.data)

    def _update(self, item_id: str, data: dict[str, Any]) -> None:
        execute_write(self.client.table("notification_queue").update(data).eq("id", item_id))

    def _log_email(self, item: dict[str, Any], recipients: str, status: str, subject: str, error: str | None = None) -> None:
        execute_write(
            self.client.table("email_logs").insert({
                "template_slug": item["template_slug"],
                "template_name": item["template_slug"],
                "recipient_email": recipients,
                "subject": subject,
                "status": status,
                "error_message": error,
                "variables": item.get("variables") or {},
                "triggered_by": "queue",
                "metadata": {
                    "queue_id": item["id"],
                    "dedup_key": item.get("dedup_key"),
                    "attempts": item.get("attempts", 0) + 1,
                },
            })
        )

    async def send_item(self, item: dict[str, Any]) -> None:
        """Resolve recipients and send one queued email.

        Raises:
            ValueError: If no recipient has an email address.
            Exception: If rendering or the Resend call fails.
        """
        recipient_ids = [str(r) for r in item.get("recipients") or []]
        emails_by_id = await self.profiles.get_emails(recipient_ids)
        emails = [emails_by_id[r] for r in recipient_ids if r in emails_by_id]
        if not emails:
            raise ValueError("No recipient email addresses found")

        result = await self.email.send_template(emails, item["template_slug"], item.get("variables") or {})
        self._log_email(item, ", ".join(emails), "sent", result["subject"])

    def _record_failure(
        self, item: dict[str, Any], attempts: int, max_attempts: int, error: Exception, result: QueueRunResult
    ) -> None:
        """Return the item to pending, or mark it failed on its last attempt."""
        final = attempts >= max_attempts
        if final:
            result.failed += 1
            result.errors.append(f"{item['id']}: {error}")
        else:
            result.retried += 1

        try:
            self._update(item["id"], {
                "status": "failed" if final else "pending",
                "attempts": attempts,
                "error_message": str(error),
                "processed_at": _now() if final else None,
            })
            if final:
                self._log_email(
                    item,
                    ", ".join(str(r) for r in item.get("recipients") or []),
                    "failed",
                    f"[Fila] {item['template_slug']}",
                    error=f"Falha após {max_attempts} tentativas: {error}",
                )
        except Exception as e:
            logger.error("Could not record failure of notification %s: %s", item["id"], e)
            result.errors.append(f"{item['id']}: {e}")

    async def process_queue(self) -> QueueRunResult:
        """Send every pending item, marking each sent, skipped, pending or failed.

        A failed write for one item is logged and recorded in the result;
        the remaining items are still processed.

        Returns:
            QueueRunResult: What happened during this run.
        """
        result = QueueRunResult()
        items = await self.fetch_pending()
        if not items:
            logger.info("No pending notifications")
            return result

        logger.info("Processing %d queued notification(s)", len(items))
        for item in items:
            result.processed += 1
            attempts = item.get("attempts", 0) + 1
            max_attempts = item.get("max_attempts") or DEFAULT_MAX_ATTEMPTS

            try:
                self._update(item["id"], {"status": "processing", "attempts": attempts})

                if await self.is_duplicate(item):
                    self._update(item["id"], {
                        "status": "skipped",
                        "processed_at": _now(),
                        "error_message": "Duplicate detected",
                    })
                    result.skipped_duplicate += 1
                    logger.info("Skipping duplicate %s (%s)", item["id"], item.get("dedup_key"))
                    continue

                await self.send_item(item)
                self._update(item["id"], {"status": "sent", "processed_at": _now()})
                result.sent += 1

            except Exception as e:
                logger.error("Failed to process notification %s: %s", item["id"], e)
                self._record_failure(item, attempts, max_attempts, e, result)

        logger.info(
            "Queue run finished: %d sent, %d skipped, %d failed, %d to retry",
            result.sent,
            result.skipped_duplicate,
            result.failed,
            result.retried,
        )
        return result
