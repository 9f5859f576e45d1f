from __future__ import annotations

import hmac
import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError

from roster.errors import ApiError, AuthorizationError, ForbiddenError
from roster.models import UserRole
from roster.settings import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

_LOCK = threading.Lock()
_FAILED_ATTEMPTS: dict[str, deque[datetime]] = defaultdict(deque)
_MAX_ATTEMPTS = 10
_ATTEMPT_WINDOW = timedelta(minutes=10)


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller threaded through every mutating operation."""

    actor_id: str
    username: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _cleanup_attempts(ip: str, now: datetime) -> None:
    queue = _FAILED_ATTEMPTS[ip]
    threshold = now - _ATTEMPT_WINDOW
    while queue and queue[0] < threshold:
        queue.popleft()
    if not queue:
        _FAILED_ATTEMPTS.pop(ip, None)


def ensure_login_attempt_allowed(ip: str) -> None:
    now = _utcnow()
    with _LOCK:
        _cleanup_attempts(ip, now)
        queue = _FAILED_ATTEMPTS.get(ip, deque())
        if len(queue) >= _MAX_ATTEMPTS:
            raise ApiError(
                status_code=429,
                code="TOO_MANY_ATTEMPTS",
                message="Too many failed login attempts. Please try again later.",
            )


def register_login_failure(ip: str) -> None:
    now = _utcnow()
    with _LOCK:
        _cleanup_attempts(ip, now)
        _FAILED_ATTEMPTS[ip].append(now)


def register_login_success(ip: str) -> None:
    with _LOCK:
        _FAILED_ATTEMPTS.pop(ip, None)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, UnknownHashError):
        return False


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def verify_admin_credentials(username: str, password: str) -> bool:
    settings = get_settings()
    env_username = _strip_quotes((settings.admin_user or "").strip())
    env_pass_hash = _strip_quotes((settings.admin_pass_hash or "").strip())

    if not hmac.compare_digest(username, env_username):
        return False
    if not env_pass_hash:
        return False
    return verify_password(password, env_pass_hash)


def create_access_token(*, actor: Actor) -> tuple[str, int]:
    settings = get_settings()
    now = _utcnow()
    expires_in = settings.access_token_minutes * 60
    claims: dict[str, Any] = {
        "sub": actor.actor_id,
        "username": actor.username,
        "role": actor.role.value,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "jti": str(uuid4()),
        "typ": "access",
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, expires_in


def decode_access_token(token: str) -> Actor:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise AuthorizationError("Token is invalid.") from exc

    if payload.get("typ") != "access":
        raise AuthorizationError("Token type is invalid.")

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise AuthorizationError("Token subject is invalid.")

    try:
        role = UserRole(payload.get("role"))
    except ValueError as exc:
        raise ForbiddenError() from exc

    return Actor(actor_id=subject, username=str(payload.get("username") or subject), role=role)


def require_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthorizationError("Missing bearer token.")

    actor = decode_access_token(credentials.credentials)
    request.state.actor = actor.role.value
    request.state.actor_id = actor.actor_id
    return actor


def require_admin(actor: Actor = Depends(require_actor)) -> Actor:
    if not actor.is_admin:
        raise ForbiddenError()
    return actor
