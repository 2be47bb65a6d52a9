"""
Task status vocabulary and time-tracking helpers.

Two status vocabularies have been written to the ``tasks`` table over time:
the canonical lowercase set (``pending``, ``in_progress``, ``completed``,
``canceled``) and a legacy title-case set (``Pending``, ``In Progress``,
``Completed``). Everything entering the API is mapped onto the canonical set
while filters match both spellings. ``migrate_legacy_statuses`` rewrites rows
that still carry legacy values.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELED = 'canceled'


LEGACY_STATUS_MAP = {
    'Pending': TaskStatus.PENDING,
    'In Progress': TaskStatus.IN_PROGRESS,
    'Completed': TaskStatus.COMPLETED,
}

TERMINAL_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELED)


def normalize_status(value: Optional[str]) -> TaskStatus:
    """
    Map a status from either vocabulary onto ``TaskStatus``.

    Raises:
        ValueError: if the value belongs to neither vocabulary
    """
    if value is None:
        return TaskStatus.PENDING
    if isinstance(value, TaskStatus):
        return value
    if value in LEGACY_STATUS_MAP:
        return LEGACY_STATUS_MAP[value]
    try:
        return TaskStatus(value)
    except ValueError:
        allowed = [s.value for s in TaskStatus] + list(LEGACY_STATUS_MAP)
        raise ValueError(f"Invalid task status '{value}'. Allowed: {', '.join(allowed)}")


def stored_values(status: TaskStatus) -> List[str]:
    """Every value that may be stored for ``status``, legacy spellings included."""
    return [status.value] + [legacy for legacy, canonical in LEGACY_STATUS_MAP.items() if canonical == status]


def is_overdue(status: Optional[str], timer_end: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """A pending task whose deadline (timer_end) has passed."""
    if not timer_end:
        return False
    try:
        canonical = normalize_status(status)
    except ValueError:
        return False
    now = now or datetime.utcnow()
    return canonical == TaskStatus.PENDING and timer_end < now


def duration_minutes(status: Optional[str], timer_start: Optional[datetime],
                     timer_end: Optional[datetime]) -> Optional[int]:
    """Elapsed whole minutes for completed tasks, None otherwise."""
    if not timer_start or not timer_end:
        return None
    try:
        if normalize_status(status) != TaskStatus.COMPLETED:
            return None
    except ValueError:
        return None
    return int((timer_end - timer_start).total_seconds() // 60)


def format_duration(minutes: Optional[int]) -> Optional[str]:
    if minutes is None:
        return None
    return f"{minutes // 60}h {minutes % 60}m"


def migrate_legacy_statuses(session) -> int:
    """
    Rewrite legacy status values stored in the tasks table.

    Returns:
        Number of rows updated
    """
    from agency_ops.models import Task

    updated = 0
    for legacy, canonical in LEGACY_STATUS_MAP.items():
        count = session.query(Task).filter(Task.status == legacy).update(
            {Task.status: canonical.value}, synchronize_session=False
        )
        if count:
            logger.info(f"Migrated {count} task(s) from '{legacy}' to '{canonical.value}'")
        updated += count
    session.commit()
    return updated
