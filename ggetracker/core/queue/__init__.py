"""
Admission queues: single-flight FIFO execution in front of scarce resources.
"""

from ggetracker.core.queue.admission import (
    AdmissionJob,
    AdmissionQueue,
    JobContext,
    JobState,
    ResultChannel,
)

__all__ = [
    "AdmissionJob",
    "AdmissionQueue",
    "JobContext",
    "JobState",
    "ResultChannel",
]
