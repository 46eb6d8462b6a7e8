"""
Contest gate: server-side admission control for run and submit.

Client timers are advisory only; every state changing request is
re-checked here against the server clock.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from common.exceptions import ContestEndedError, ContestNotStartedError
from common.models import Contest
from common.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

STATUS_UPCOMING = "upcoming"
STATUS_LIVE = "live"
STATUS_ENDED = "ended"


def contest_status(contest: Contest, now: Optional[datetime] = None) -> str:
    """
    Project a contest's status from the server clock.

    Returns:
        str: "upcoming", "live" or "ended"
    """
    now = as_utc(now) if now is not None else utcnow()
    if now < as_utc(contest.start_time):
        return STATUS_UPCOMING
    if now > as_utc(contest.end_time):
        return STATUS_ENDED
    return STATUS_LIVE


class ContestGate:
    """
    Admission control for run and submit requests.

    Args:
        clock: Source of authoritative server time
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def now(self) -> datetime:
        return as_utc(self.clock())

    def admit(self, contest: Contest) -> datetime:
        """
        Admit a request or reject it.

        Returns:
            datetime: Server admission time, recorded as submission time

        Raises:
            ContestNotStartedError: Before the contest start time
            ContestEndedError: After the contest end time
        """
        now = self.now()
        status = contest_status(contest, now)

        if status == STATUS_ENDED:
            logger.info(
                f"Rejected request for contest {contest.contest_id}: "
                f"ended at {as_utc(contest.end_time).isoformat()}"
            )
            raise ContestEndedError(
                f"Contest {contest.contest_id} has ended"
            )
        if status == STATUS_UPCOMING:
            raise ContestNotStartedError(
                f"Contest {contest.contest_id} has not started yet"
            )

        return now
