"""
Calls into the Supabase project for work owned by database procedures.

Waitlist promotion and member activity tracking are implemented as Postgres
functions in Supabase; this service only triggers them.
"""
import logging
from typing import Optional
from uuid import UUID

from supabase import Client, create_client

from gymbook.core.config import settings

logger = logging.getLogger(__name__)


class SupabaseGateway:
    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
        return self._client

    def promote_from_waitlist(self, course_id: UUID) -> None:
        """Ask the database to move the next waitlisted member onto the roster.

        The procedure owns the promotion and the notification of the promoted
        member.
        """
        self.client.rpc("promote_from_waitlist", {"course_id_param": str(course_id)}).execute()
        logger.info(f"Requested waitlist promotion for course {course_id}")

    def mark_user_as_active(self, user_id: UUID) -> None:
        """Record real member activity (used by the inactivity reports)."""
        self.client.rpc("mark_user_as_active", {"user_id_param": str(user_id)}).execute()

    def get_user(self, token: str):
        """Resolve a Supabase access token to its auth user."""
        return self.client.auth.get_user(token)


supabase_gateway = SupabaseGateway()
