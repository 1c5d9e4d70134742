"""Job history inspection."""

from datetime import datetime
from typing import Iterable

from kubeinit.state import JobRecord


def latest_successful_job(jobs: Iterable[JobRecord]) -> JobRecord | None:
    """
    Return the job with the most recent successful completion condition.

    Only "Complete"/"True" conditions with a transition time count. On equal
    transition times the first job seen wins.
    """
    latest: JobRecord | None = None
    latest_time: datetime | None = None

    for job in jobs:
        for condition in job.conditions:
            if not condition.is_successful_completion:
                continue
            if latest_time is None or condition.last_transition_time > latest_time:
                latest = job
                latest_time = condition.last_transition_time

    return latest
