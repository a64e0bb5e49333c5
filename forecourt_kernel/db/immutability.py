"""
ORM-Level Immutability Enforcement.

Bank transactions and invoice payments are append-only.  A wrong entry is
corrected by appending a compensating record, never by editing or deleting
the original, so that every bank balance can be rebuilt from its
transaction history.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database:

    session.flush()
         |
         v
    [before_update] --> _block_update() --> ImmutabilityViolationError
    [before_delete] --> _block_delete() --> ImmutabilityViolationError

Protected entities
------------------
Entity                | When immutable
----------------------|-----------------------------------------------
BankTransactionModel  | Always (from creation)
InvoicePaymentModel   | Always (from creation)

``updated_at`` / ``updated_by_id`` changes are audit metadata and are
allowed through.
"""

from sqlalchemy import event, inspect

from forecourt_kernel.exceptions import ImmutabilityViolationError
from forecourt_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _changed_fields(target) -> list[str]:
    state = inspect(target)
    return [
        attr.key
        for attr in state.attrs
        if attr.history.has_changes() and attr.key not in _AUDIT_METADATA_FIELDS
    ]


def _block_update(mapper, connection, target):
    changed = _changed_fields(target)
    if not changed:
        return
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "fields": changed,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"append-only record cannot be modified (fields: {', '.join(changed)})",
    )


def _block_delete(mapper, connection, target):
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason="append-only record cannot be deleted; append a reversal instead",
    )


def _protected_models() -> tuple:
    from forecourt_modules.ar.orm import InvoicePaymentModel
    from forecourt_modules.cash.orm import BankTransactionModel

    return (BankTransactionModel, InvoicePaymentModel)


def register_immutability_listeners() -> None:
    """
    Register the append-only guards (idempotent).

    Call after module ORM models are imported and before any writes.
    """
    for model in _protected_models():
        if not event.contains(model, "before_update", _block_update):
            event.listen(model, "before_update", _block_update)
        if not event.contains(model, "before_delete", _block_delete):
            event.listen(model, "before_delete", _block_delete)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the append-only guards. FOR TESTING ONLY."""
    for model in _protected_models():
        if event.contains(model, "before_update", _block_update):
            event.remove(model, "before_update", _block_update)
        if event.contains(model, "before_delete", _block_delete):
            event.remove(model, "before_delete", _block_delete)
