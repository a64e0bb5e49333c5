"""
Shared transaction helpers for module services.

Used by forecourt_modules/*/service.py so that every public use case is one
atomic unit of work: all aggregates it touches (invoice, credit account,
bank account, loan, payroll) commit together or not at all.

Services take ``auto_commit``.  The outermost service owns the boundary
(``auto_commit=True``); collaborators it composes run with
``auto_commit=False`` and only flush, so their writes join the caller's
transaction.

Architecture: Modules layer. Imports only from forecourt_kernel.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from forecourt_kernel.db.base import Base
from forecourt_kernel.exceptions import OptimisticLockError, ResourceNotFoundError
from forecourt_kernel.logging_config import LogContext

ModelT = TypeVar("ModelT", bound=Base)


@contextmanager
def unit_of_work(
    session: Session,
    logger: logging.Logger,
    operation: str,
    *,
    auto_commit: bool = True,
    actor_id: UUID | None = None,
    entity_type: str = "",
    entity_id: Any = None,
) -> Iterator[None]:
    """
    Run the body as one transaction.

    On success: commit (``auto_commit``) or flush (composed service).
    On ``StaleDataError``: roll back and raise ``OptimisticLockError``.
    On any other exception: roll back (``auto_commit``) and re-raise.
    """
    with LogContext.bind(
        operation=operation,
        actor_id=str(actor_id) if actor_id else None,
        entity_id=str(entity_id) if entity_id else None,
    ):
        try:
            yield
            if auto_commit:
                session.commit()
                logger.debug("transaction_committed", extra={"operation": operation})
            else:
                session.flush()
        except StaleDataError as exc:
            if auto_commit:
                session.rollback()
            logger.warning(
                "optimistic_lock_conflict",
                extra={"operation": operation, "entity_type": entity_type},
            )
            raise OptimisticLockError(
                entity_type=entity_type or operation,
                entity_id=str(entity_id) if entity_id else "",
            ) from exc
        except Exception:
            if auto_commit:
                session.rollback()
                logger.warning(
                    "transaction_rolled_back",
                    extra={"operation": operation},
                    exc_info=True,
                )
            raise


def load_for_update(
    session: Session,
    model: type[ModelT],
    entity_id: UUID,
    not_found: type[ResourceNotFoundError],
) -> ModelT:
    """
    ``SELECT ... FOR UPDATE`` one row by primary key.

    Raises:
        ``not_found`` (a ResourceNotFoundError subclass) when absent.
    """
    row = session.execute(
        select(model)
        .where(model.id == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if row is None:
        raise not_found(str(entity_id))
    return row


def load(
    session: Session,
    model: type[ModelT],
    entity_id: UUID,
    not_found: type[ResourceNotFoundError],
) -> ModelT:
    """Plain primary-key read; raises ``not_found`` when absent."""
    row = session.get(model, entity_id)
    if row is None:
        raise not_found(str(entity_id))
    return row
