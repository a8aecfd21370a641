"""Caller identity for billing routes

Authentication happens upstream; the gateway in front of this service
forwards the verified identity in request headers.
"""

from typing import List, Optional
from fastapi import Header
from pydantic import BaseModel
from config import ApplicationConfig
from libs.result import Error
from src.api.error import ClientError
from src.app.errors import ErrorCode

ADMIN_ROLE = "admin"


class AuthContext(BaseModel):
    tenant_id: str
    user_id: str
    client_id: Optional[str] = None
    roles: List[str] = []

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles


async def get_auth_context(
    x_tenant_id: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
    x_client_id: Optional[str] = Header(default=None),
    x_user_roles: Optional[str] = Header(default=None),
) -> AuthContext:
    if ApplicationConfig.AUTH_DISABLED:
        return AuthContext(
            tenant_id=x_tenant_id or "default",
            user_id=x_user_id or "local-dev",
            client_id=x_client_id,
            roles=[ADMIN_ROLE],
        )

    if not x_tenant_id or not x_user_id:
        raise ClientError(
            Error(code=ErrorCode.ACCESS_DENIED, message="Missing caller identity"),
            status_code=401,
        )

    roles = [r.strip() for r in (x_user_roles or "").split(",") if r.strip()]
    return AuthContext(
        tenant_id=x_tenant_id,
        user_id=x_user_id,
        client_id=x_client_id,
        roles=roles,
    )


def require_admin(context: AuthContext) -> None:
    if not context.is_admin:
        raise ClientError(
            Error(code=ErrorCode.ACCESS_DENIED, message="Admin role required"),
        )
