import logging
from typing import Any, Dict

from fastapi import Depends, Request
from jose import JWTError

from core.exceptions import BusinessError, ErrorCode
from core.security import decode_access_token
from models import UserRole

logger = logging.getLogger(__name__)


async def get_current_user(request: Request) -> Dict[str, Any]:
    """Identify the caller from the HttpOnly cookie or the Authorization header"""
    token = request.cookies.get("access_token")

    # Fallback to Authorization header (for mobile/API clients)
    if not token:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.split(" ", 1)[1].strip()

    if not token:
        raise BusinessError(ErrorCode.UNAUTHORIZED)

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise BusinessError(ErrorCode.AUTH_TOKEN_INVALID, "Could not validate credentials")

    user_id = payload.get("sub")
    role = UserRole.from_code(payload.get("role"))
    if user_id is None or role is None:
        raise BusinessError(ErrorCode.AUTH_TOKEN_INVALID, "Could not validate credentials")

    try:
        return {"id": int(user_id), "role": role}
    except (TypeError, ValueError):
        raise BusinessError(ErrorCode.AUTH_TOKEN_INVALID, "Could not validate credentials")


def require_roles(*roles: UserRole):
    """Dependency factory: the caller must hold one of the given roles"""
    allowed = frozenset(roles)

    async def check_role(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if current_user["role"] not in allowed:
            logger.warning(
                f"User {current_user['id']} with role {current_user['role'].value} denied; "
                f"requires one of {sorted(r.value for r in allowed)}"
            )
            raise BusinessError(ErrorCode.AUTH_ROLE_NOT_ALLOWED)
        return current_user

    return check_role
