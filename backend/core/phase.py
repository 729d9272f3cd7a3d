"""Election phase resolution.

The phase of an election is a pure function of the current time, the
election window and the explicit cancellation flag.
"""
from datetime import datetime

from django.db.models import Q

UPCOMING = "upcoming"
ACTIVE = "active"
COMPLETED = "completed"
CANCELLED = "cancelled"

PHASE_CHOICES = [
    (UPCOMING, "Upcoming"),
    (ACTIVE, "Active"),
    (COMPLETED, "Completed"),
    (CANCELLED, "Cancelled"),
]
PHASES = [value for value, _ in PHASE_CHOICES]


def resolve_phase(now: datetime, start: datetime, end: datetime, cancelled: bool = False) -> str:
    if cancelled:
        return CANCELLED
    if now < start:
        return UPCOMING
    if now <= end:
        return ACTIVE
    return COMPLETED


def phase_filter(phase: str, now: datetime) -> Q:
    """Queryset filter selecting elections whose resolved phase is ``phase`` at ``now``."""
    if phase == CANCELLED:
        return Q(cancelled=True)
    live = Q(cancelled=False)
    if phase == UPCOMING:
        return live & Q(start_time__gt=now)
    if phase == ACTIVE:
        return live & Q(start_time__lte=now, end_time__gte=now)
    if phase == COMPLETED:
        return live & Q(end_time__lt=now)
    raise ValueError(f"unknown phase {phase!r}")
