"""Authentication dependencies for FastAPI endpoints."""
import logging
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer

from gymbook.crud.crud_role import user_role as crud_user_role
from gymbook.crud.crud_user import user as crud_user
from gymbook.db.session import SessionDep
from gymbook.schemas.user import CurrentUser as CurrentUserSchema
from gymbook.services.auth_service import auth_service

logger = logging.getLogger(__name__)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


async def get_current_user(
    db: SessionDep,
    token: str = Depends(oauth2_scheme),
) -> CurrentUserSchema:
    """Get the current authenticated user with their application roles."""
    user_info = auth_service.verify_token(token)
    try:
        user_id = UUID(str(user_info["id"]))
    except ValueError as e:
        logger.error(f"Invalid UUID format: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid user ID format")

    user = await crud_user.get_or_create(
        db, id=user_id, email=user_info.get("email"), display_name=user_info.get("display_name")
    )
    roles = await crud_user_role.get_roles(db, user_id=user.id)
    return CurrentUserSchema(id=user.id, email=user.email, display_name=user.display_name, roles=roles)


# Type aliases for dependencies
CurrentUser = Annotated[CurrentUserSchema, Depends(get_current_user)]
