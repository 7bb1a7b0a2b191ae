"""
Legal state transitions for recording jobs.

pending -> capturing -> transcoding -> completed
              |              |
              +--> failed <--+
pending -> failed   (start time missed while the process was down)

Terminal states are immutable. Cancellation removes a pending job from the
table instead of moving it to a state.
"""

from typing import FrozenSet, Set, Tuple
from .models import JobStatus


TERMINAL_STATES: FrozenSet[JobStatus] = frozenset({
    JobStatus.COMPLETED,
    JobStatus.FAILED,
})

_TRANSITIONS: Set[Tuple[JobStatus, JobStatus]] = {
    (JobStatus.PENDING, JobStatus.CAPTURING),
    (JobStatus.PENDING, JobStatus.FAILED),
    (JobStatus.CAPTURING, JobStatus.TRANSCODING),
    (JobStatus.CAPTURING, JobStatus.FAILED),
    (JobStatus.TRANSCODING, JobStatus.COMPLETED),
    (JobStatus.TRANSCODING, JobStatus.FAILED),
}


def is_terminal(status: JobStatus) -> bool:
    return status in TERMINAL_STATES


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Check whether moving a job from current to target is allowed."""
    return (current, target) in _TRANSITIONS
