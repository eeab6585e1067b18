"""
API dependency helpers.

Provides the dependency-resolved user context and common request helpers
for routes.
"""
import logging
from typing import Optional, Tuple, Dict, Any

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from compliance.db.database import get_db
from compliance.api.auth import resolve_identity_from_headers, get_or_create_user, get_user_memberships
from compliance.utils.runtime import dev_mode_active

logger = logging.getLogger(__name__)

DEV_USER_EMAIL = "dev@localhost"

# Contract:
# Returns (sqlalchemy User model, current_user_context_dict)
# Raises 401 if identity cannot be resolved.

def get_current_user_context(
    db: Session = Depends(get_db),
    x_auth_request_user: Optional[str] = Header(default=None),
    x_auth_request_email: Optional[str] = Header(default=None),
    x_forwarded_user: Optional[str] = Header(default=None),
    x_forwarded_email: Optional[str] = Header(default=None),
) -> Tuple[Any, Dict[str, Any]]:
    try:
        is_dev_mode = dev_mode_active()
    except RuntimeError as exc:
        logger.error("DEV_MODE misconfiguration detected: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="DEV_MODE misconfigured")

    name, email = resolve_identity_from_headers(
        x_auth_request_user=x_auth_request_user,
        x_auth_request_email=x_auth_request_email,
        x_forwarded_user=x_forwarded_user,
        x_forwarded_email=x_forwarded_email,
    )
    if not email and is_dev_mode:
        # Explicit headers still win so tests can act as other users
        email, name = DEV_USER_EMAIL, "Development User"
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    user = get_or_create_user(db, email=email, display_name=name)
    memberships = get_user_memberships(db, user.id)
    memberships_by_org = {str(m["organization_id"]): m for m in memberships}
    current_user = {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "is_superadmin": bool(user.is_superadmin),
        "memberships": memberships,
        "memberships_by_org": memberships_by_org,
    }
    return user, current_user


def client_ip(request: Request) -> Optional[str]:
    """Best client address: first hop of X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None
