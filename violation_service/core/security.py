import logging
import uuid
from typing import Optional

import jwt
from fastapi import Request

from violation_service.core.config import settings
from violation_service.core.constants import UserRole
from violation_service.core.exceptions import InvalidInput, PermissionDenied, Unauthenticated
from violation_service.core.principal import Principal

logger = logging.getLogger(__name__)


def decode_jwt_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get("auth_token")


def _optional_uuid(value) -> Optional[uuid.UUID]:
    if value in (None, ""):
        return None
    return uuid.UUID(str(value))


def principal_from_claims(payload: dict) -> Principal:
    """Build a principal from verified token claims.

    Malformed ids raise ``ValueError``; an unknown role is ``PermissionDenied``.
    """
    try:
        role = UserRole.parse(payload.get("role"))
    except InvalidInput:
        raise PermissionDenied("unknown role")

    return Principal(
        user_id=uuid.UUID(str(payload["sub"])),
        org_id=_optional_uuid(payload.get("org_id")),
        role=role,
        driver_id=_optional_uuid(payload.get("driver_id")),
    )


async def get_current_principal(request: Request) -> Principal:
    """Helper function to get the calling principal from the bearer token"""
    token = _bearer_token(request)
    if not token:
        raise Unauthenticated()

    try:
        payload = decode_jwt_token(token)
    except jwt.PyJWTError as e:
        logger.info("Rejected token: %s", e)
        raise Unauthenticated("Invalid or expired token")

    try:
        return principal_from_claims(payload)
    except (KeyError, ValueError):
        raise Unauthenticated("Invalid token claims")
