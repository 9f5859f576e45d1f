from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roster.models import AuditActorType, AuditLog
from roster.security import Actor

logger = logging.getLogger("roster.audit")


def log_audit(
    db: Session,
    *,
    actor: Actor | None,
    action: str,
    success: bool,
    entity_type: str | None = None,
    entity_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> None:
    actor_type = AuditActorType.USER if actor is not None else AuditActorType.SYSTEM
    actor_id = actor.actor_id if actor is not None else "system"
    audit = AuditLog(
        ts_utc=datetime.now(timezone.utc),
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        ip=ip,
        user_agent=user_agent,
        success=success,
        details=details or {},
    )
    db.add(audit)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "audit_log_write_failed",
            extra={
                "request_id": request_id,
                "action": action,
                "actor_type": actor_type.value,
                "actor_id": actor_id,
                "success": success,
            },
        )
        return

    logger.info(
        "audit_event",
        extra={
            "request_id": request_id,
            "action": action,
            "actor_type": actor_type.value,
            "actor_id": actor_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "ip": ip,
            "success": success,
            "details": details or {},
        },
    )


def client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def log_request_audit(
    db: Session,
    request: Request,
    *,
    actor: Actor | None,
    action: str,
    success: bool = True,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    log_audit(
        db,
        actor=actor,
        action=action,
        success=success,
        entity_type=entity_type,
        entity_id=entity_id,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        details=details,
        request_id=getattr(request.state, "request_id", None),
    )
