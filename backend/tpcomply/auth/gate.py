"""
Turn a session token into a firm-bound user.

The gate runs on every request and always re-reads the users table: role
and firm assignment can change between sessions, so nothing beyond the
email claim is trusted from the token.

Failure kinds:
  - no token / bad token / no email claim  → Unauthenticated
  - no active user row for that email       → AccountNotFound
  - user has no firm                        → NoFirmAssigned
  - stored role outside the closed set      → Forbidden
  - anything else going wrong on lookup     → ResolutionFailure (logged)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tpcomply.auth.errors import (
    AccountNotFound,
    Forbidden,
    NoFirmAssigned,
    ResolutionFailure,
    Unauthenticated,
)
from tpcomply.auth.jwt import decode_access_token
from tpcomply.auth.roles import Role, coerce_role
from tpcomply.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: str
    name: str | None
    role: Role
    firm_id: str
    firm_name: str | None


class AuthenticationGate:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve_caller(self, token: str | None) -> AuthenticatedUser:
        email = self._email_from_token(token)

        try:
            result = await self.session.execute(
                select(User).options(selectinload(User.firm)).where(User.email == email)
            )
            user = result.scalar_one_or_none()
        except Exception as exc:
            logger.exception("User lookup failed for %s", email)
            raise ResolutionFailure() from exc

        if user is None or not user.is_active:
            raise AccountNotFound()

        if not user.firm_id:
            raise NoFirmAssigned()

        role = coerce_role(user.role)
        if role is None:
            logger.warning("User %s has unrecognised role %r", user.id, user.role)
            raise Forbidden(f"Role {user.role} is not recognised")

        return AuthenticatedUser(
            id=user.id,
            email=user.email,
            name=user.name,
            role=role,
            firm_id=user.firm_id,
            firm_name=user.firm.name if user.firm else None,
        )

    @staticmethod
    def _email_from_token(token: str | None) -> str:
        if not token:
            raise Unauthenticated()
        try:
            claims = decode_access_token(token)
        except JWTError as e:
            logger.debug("JWT decode failed: %s", e)
            raise Unauthenticated("Invalid or expired token") from e

        email = claims.get("email")
        if not email:
            raise Unauthenticated("Session carries no email claim")
        return email
