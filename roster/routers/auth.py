from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from roster.audit import client_ip, log_request_audit
from roster.db import get_db
from roster.errors import ApiError
from roster.models import AppUser, UserRole
from roster.schemas import AuthResponse, LoginRequest, MeResponse
from roster.security import (
    Actor,
    create_access_token,
    ensure_login_attempt_allowed,
    register_login_failure,
    register_login_success,
    require_actor,
    verify_admin_credentials,
    verify_password,
)

router = APIRouter(tags=["auth"])


def _authenticate(db: Session, username: str, password: str) -> Actor | None:
    if verify_admin_credentials(username, password):
        return Actor(actor_id=username, username=username, role=UserRole.ADMIN)

    user = db.scalar(select(AppUser).where(AppUser.username == username))
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        return None
    return Actor(actor_id=f"user:{user.id}", username=user.username, role=user.role)


@router.post("/api/auth/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AuthResponse:
    username = payload.username.strip()
    ip = client_ip(request)

    if ip:
        try:
            ensure_login_attempt_allowed(ip)
        except ApiError:
            log_request_audit(
                db,
                request,
                actor=None,
                action="LOGIN_FAIL",
                success=False,
                details={"username": username, "reason": "TOO_MANY_ATTEMPTS"},
            )
            raise

    actor = _authenticate(db, username, payload.password)
    if actor is None:
        if ip:
            register_login_failure(ip)
        log_request_audit(
            db,
            request,
            actor=None,
            action="LOGIN_FAIL",
            success=False,
            details={"username": username, "reason": "INVALID_CREDENTIALS"},
        )
        raise ApiError(
            status_code=401,
            code="INVALID_CREDENTIALS",
            message="Invalid credentials.",
        )

    if ip:
        register_login_success(ip)
    request.state.actor = actor.role.value
    request.state.actor_id = actor.actor_id

    token, expires_in = create_access_token(actor=actor)
    log_request_audit(db, request, actor=actor, action="LOGIN_SUCCESS")
    return AuthResponse(access_token=token, expires_in=expires_in)


@router.get("/api/auth/me", response_model=MeResponse)
def me(actor: Actor = Depends(require_actor)) -> MeResponse:
    return MeResponse(actor_id=actor.actor_id, username=actor.username, role=actor.role)
