import logging
from typing import Optional

from fastapi import HTTPException

from gymbook.services.supabase_gateway import SupabaseGateway, supabase_gateway


class AuthService:
    def __init__(self, gateway: Optional[SupabaseGateway] = None):
        self.gateway = gateway or supabase_gateway
        self.logger = logging.getLogger(__name__)

    def verify_token(self, token: str) -> dict:
        """Verify a Supabase access token and return the user information.

        Args:
            token: JWT access token issued by Supabase Auth

        Returns:
            dict: ``id``, ``email`` and ``display_name`` of the auth user

        Raises:
            HTTPException: If token is invalid or expired
        """
        try:
            self.logger.debug("Attempting to verify token")
            response = self.gateway.get_user(token)
        except Exception as e:
            error_str = str(e)
            self.logger.error(f"Token verification failed: {error_str}")
            if "token is expired" in error_str.lower():
                raise HTTPException(status_code=401, detail="Token has expired")
            raise HTTPException(status_code=401, detail="Invalid token")

        if not response or not response.user:
            self.logger.warning("Token verification failed: No valid user found")
            raise HTTPException(status_code=401, detail="Invalid token")

        metadata = response.user.user_metadata or {}
        self.logger.info(f"Token verified successfully for user: {response.user.email}")
        return {
            "id": response.user.id,
            "email": response.user.email,
            "display_name": metadata.get("display_name") or metadata.get("full_name"),
        }


auth_service = AuthService()
