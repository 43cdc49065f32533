"""
ORM-Level Immutability Enforcement for locked baselines.

===============================================================================
WHY THIS EXISTS
===============================================================================

A baseline is the yardstick every variance and every earned-value figure is
measured against.  If a baseline could drift after it was captured, past EV
snapshots would silently stop agreeing with it.  Once locked, a baseline
and its items are therefore read-only:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | When Immutable      | Mutable fields
-----------------------|---------------------|------------------------------------
ScheduleBaselineModel  | once locked         | is_active, updated_at, updated_by_id
BaselineItemModel      | ALWAYS              | none

ORM deletes of either are always rejected.  The administrative purge in
``BaselineService.purge`` removes rows with bulk DELETE statements, which
do not fire mapper events; ON DELETE CASCADE covers the items on
PostgreSQL.

===============================================================================
USAGE
===============================================================================

    from schedule_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from schedule_kernel.exceptions import ImmutabilityViolationError
from schedule_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_BASELINE_MUTABLE_FIELDS = frozenset({"is_active", "updated_at", "updated_by_id"})


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str, field=None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_baseline_immutability(mapper, connection, target):
    """
    Reject updates to a locked baseline other than the activation flag.

    A baseline that was already locked before this flush may only change
    ``is_active`` (plus update metadata).  Unlocking is itself an update of
    ``locked`` and is rejected.
    """
    insp = inspect(target)
    locked_history = insp.attrs.locked.history
    was_locked = (
        bool(locked_history.deleted[0]) if locked_history.deleted else bool(target.locked)
    )
    if not was_locked:
        return

    for key in insp.mapper.column_attrs.keys():
        if key in _BASELINE_MUTABLE_FIELDS:
            continue
        if insp.attrs[key].history.has_changes():
            _blocked(
                "ScheduleBaseline",
                str(target.id),
                "UPDATE",
                f"Cannot modify field '{key}' on locked baseline",
                field=key,
            )


def _check_baseline_delete(mapper, connection, target):
    _blocked(
        "ScheduleBaseline",
        str(target.id),
        "DELETE",
        "Baselines are removed only by administrative purge",
    )


def _check_baseline_item_immutability(mapper, connection, target):
    insp = inspect(target)
    for key in insp.mapper.column_attrs.keys():
        if insp.attrs[key].history.has_changes():
            _blocked(
                "BaselineItem",
                str(target.id),
                "UPDATE",
                f"Cannot modify field '{key}' on baseline item",
                field=key,
            )


def _check_baseline_item_delete(mapper, connection, target):
    _blocked(
        "BaselineItem",
        str(target.id),
        "DELETE",
        "Baseline items are removed only with their baseline",
    )


def _listeners():
    from schedule_kernel.models.baseline import BaselineItemModel, ScheduleBaselineModel

    return (
        (ScheduleBaselineModel, "before_update", _check_baseline_immutability),
        (ScheduleBaselineModel, "before_delete", _check_baseline_delete),
        (BaselineItemModel, "before_update", _check_baseline_item_immutability),
        (BaselineItemModel, "before_delete", _check_baseline_item_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; already-registered listeners are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
