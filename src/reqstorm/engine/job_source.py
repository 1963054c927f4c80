"""Job tokens and the producer that fills the job channel."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from reqstorm._internal.logging import get_logger

if TYPE_CHECKING:
    from reqstorm.engine.channel import Channel, Sender

logger = get_logger("engine.job_source")


@dataclass(frozen=True)
class Job:
    """A request to issue. Carries nothing but its identity.

    Attributes:
        id: Sequence number assigned by the job source.
    """

    id: int


class JobSource:
    """Enqueues exactly ``requests`` jobs and then closes its sender.

    The job channel is expected to be created with a capacity of
    ``requests`` so that every send completes without waiting.

    Attributes:
        requests: Number of jobs to produce.
    """

    def __init__(self, requests: int) -> None:
        self.requests = requests

    def open(self, channel: Channel[Job]) -> Sender[Job]:
        """Take the producer handle on ``channel``.

        Call this before any consumer starts, so the channel cannot close
        before the jobs are in.
        """
        return channel.sender()

    async def run(self, sender: Sender[Job]) -> int:
        """Send all jobs and close ``sender``.

        Args:
            sender: Handle returned by ``open``.

        Returns:
            The number of jobs sent.
        """
        async with sender:
            for job_id in range(self.requests):
                await sender.send(Job(id=job_id))
        logger.debug("Enqueued %d jobs", self.requests)
        return self.requests
