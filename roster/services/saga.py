"""Sequential multi-step writes with per-step compensation.

Each step commits on its own, so a saga is not a transaction: when a later
step fails, completed steps are undone by their compensating action on a
best-effort basis. A compensation that itself fails is logged and the
original failure is still raised.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roster.errors import StorageError
from roster.services.storage import describe_db_error

logger = logging.getLogger("roster.saga")


@dataclass(frozen=True, slots=True)
class SagaStep:
    name: str
    action: Callable[[], Any]
    compensate: Callable[[], Any] | None = None
    failure_message: str | None = None


def run_saga(
    db: Session,
    steps: Sequence[SagaStep],
    *,
    saga: str,
    context: dict[str, Any] | None = None,
) -> None:
    log_context = dict(context or {})
    completed: list[SagaStep] = []
    for step in steps:
        try:
            step.action()
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "saga_step_failed",
                extra={
                    "saga": saga,
                    "step": step.name,
                    "error": describe_db_error(exc),
                    "completed_steps": [item.name for item in completed],
                    **log_context,
                },
            )
            _compensate(db, completed, saga=saga, context=log_context)
            prefix = step.failure_message or f"{saga} step '{step.name}' failed"
            raise StorageError(f"{prefix}: {describe_db_error(exc)}") from exc
        completed.append(step)


def _compensate(
    db: Session,
    completed: Sequence[SagaStep],
    *,
    saga: str,
    context: dict[str, Any],
) -> None:
    for step in reversed(completed):
        if step.compensate is None:
            continue
        try:
            step.compensate()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                "saga_compensation_failed",
                extra={"saga": saga, "step": step.name, **context},
            )
            continue
        logger.warning(
            "saga_step_compensated",
            extra={"saga": saga, "step": step.name, **context},
        )
