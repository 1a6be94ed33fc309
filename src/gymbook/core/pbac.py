import logging
import os
from typing import Dict, List, Annotated

from fastapi import Depends, HTTPException, status
from pydantic import BaseModel
from yaml import safe_load

from gymbook.api.auth_deps import get_current_user
from gymbook.schemas.user import CurrentUser

logger = logging.getLogger(__name__)

POLICY_PATHS = [
    "policies.yaml",  # Current directory
    "/app/policies.yaml",  # Docker app directory
    os.path.join(os.path.dirname(__file__), "../../../policies.yaml"),  # Repository root
]


# Load policies from YAML file
def load_policies() -> Dict:
    for path in POLICY_PATHS:
        if os.path.exists(path):
            logger.debug(f"Loading policies from: {path}")
            with open(path, "r") as f:
                return safe_load(f) or {}

    logger.error(f"policies.yaml not found in any of these paths: {POLICY_PATHS}")
    return {}


class Policy(BaseModel):
    roles: List[str]
    actions: List[str]
    resources: List[str]


def check_policy(user: CurrentUser, action: str, resource: str, policies: Dict | None = None) -> bool:
    """Check if user has permission to perform action on resource."""
    if policies is None:
        policies = load_policies()

    user_roles = [role.value for role in user.roles]
    logger.info(f"Checking policy for user {user.id} with roles {user_roles}, action: {action}, resource: {resource}")

    for policy in policies.get("policies", []):
        policy_obj = Policy(**policy)

        if not any(role in user_roles for role in policy_obj.roles):
            continue
        if action not in policy_obj.actions:
            continue
        # Wildcard "*" matches every resource
        if "*" not in policy_obj.resources and resource not in policy_obj.resources:
            continue

        logger.info(f"Policy check passed for user {user.id}")
        return True

    logger.warning(f"No matching policy found for user {user.id}, action: {action}, resource: {resource}")
    return False


def require_permission(action: str, resource: str):
    """Dependency factory requiring a specific permission for an endpoint."""
    async def permission_dependency(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        if not check_policy(current_user, action, resource):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied"
            )
        return current_user

    return permission_dependency
