"""
Pure domain layer: clock abstraction and workflow value objects.

No ORM, no database, no I/O.
"""

from forecourt_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from forecourt_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Guard",
    "Transition",
    "Workflow",
]
