"""Client profile lookups used by the design order flows."""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from src.core.retry import execute_read
from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

FALLBACK_NAME = "Cliente"


@dataclass(frozen=True)
class ClientIdentity:
    """Names shown to admins in notifications about a client."""

    client_name: str
    company_name: str


class ProfileService:
    """Service for reading client profiles and roles."""

    def __init__(self) -> None:
        """Initialize profile service with Supabase client."""
        self.client = get_supabase_client()

    async def get_profile(self, user_id: UUID) -> dict[str, Any] | None:
        """Get a profile by auth user ID.

        Args:
            user_id: The auth user ID.

        Returns:
            dict | None: full_name/company_name/email or None if not found.
        """
        response = execute_read(
            self.client.table("profiles")
            .select("full_name, company_name, email")
            .eq("user_id", str(user_id))
            .maybe_single()
        )
        return response.data if response and response.data else None

    async def get_onboarding_company_name(self, user_id: UUID) -> str | None:
        """Company name captured during onboarding, if any."""
        response = execute_read(
            self.client.table("client_onboarding")
            .select("company_name")
            .eq("user_id", str(user_id))
            .maybe_single()
        )
        if response and response.data:
            return response.data.get("company_name")
        return None

    async def resolve_identity(self, user_id: UUID, email: str | None = None) -> ClientIdentity:
        """Resolve the client and company names used in admin notifications.

        Client name falls back from the profile's full name to the email;
        company name falls back from the profile to the onboarding form to
        the full name. Both end at "Cliente".

        Args:
            user_id: The client's auth user ID.
            email: Email from the access token.

        Returns:
            ClientIdentity: Resolved names.
        """
        full_name: str | None = None
        company_name: str | None = None

        try:
            profile = await self.get_profile(user_id)
            if profile:
                full_name = profile.get("full_name")
                company_name = profile.get("company_name")
            if not full_name and not company_name:
                company_name = await self.get_onboarding_company_name(user_id)
        except Exception as e:
            logger.warning("Failed to resolve client identity for %s: %s", user_id, e)

        return ClientIdentity(
            client_name=full_name or email or FALLBACK_NAME,
            company_name=company_name or full_name or FALLBACK_NAME,
        )

    async def has_admin_role(self, user_id: UUID) -> bool:
        """Check user_roles for an 'admin' row.

        Args:
            user_id: The auth user ID.

        Returns:
            bool: True if any of the user's roles is admin.
        """
        response = execute_read(
            self.client.table("user_roles")
            .select("role")
            .eq("user_id", str(user_id))
        )
        return any(row.get("role") == "admin" for row in response.data or [])

    async def get_emails(self, user_ids: list[str]) -> dict[str, str]:
        """Map auth user IDs to their profile emails.

        Args:
            user_ids: Auth user IDs.

        Returns:
            dict: user_id -> email for the profiles that have one.
        """
        if not user_ids:
            return {}
        response = execute_read(
            self.client.table("profiles")
            .select("user_id, email")
            .in_("user_id", user_ids)
        )
        return {row["user_id"]: row["email"] for row in response.data or [] if row.get("email")}
