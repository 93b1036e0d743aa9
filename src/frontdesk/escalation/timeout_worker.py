"""TimeoutWorker: closes help requests nobody answered in time."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from frontdesk.core.protocols import IHelpRequestStore
from frontdesk.core.types import Clock, utcnow
from frontdesk.escalation.state_machine import HelpRequestStateMachine
from frontdesk.models.outcomes import SweepReport

logger = logging.getLogger(__name__)


class TimeoutWorker:
    """Marks requests pending for at least ``threshold`` as unresolved."""

    def __init__(
        self,
        *,
        store: IHelpRequestStore,
        state_machine: HelpRequestStateMachine,
        threshold: timedelta = timedelta(minutes=30),
        interval: timedelta = timedelta(minutes=5),
        name: str = "timeout",
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._state_machine = state_machine
        self._threshold = threshold
        self._interval = interval
        self._name = name
        self._clock = clock

    @property
    def name(self) -> str:
        return self._name

    async def sweep(self) -> SweepReport:
        """Expire every stale pending request; one failure never stops the rest."""
        report = SweepReport()
        cutoff = self._clock() - self._threshold
        stale = await self._store.list_stale_pending(cutoff)
        logger.info("[%s] Found %d expired help requests", self._name, len(stale))
        for request in stale:
            try:
                if await self._state_machine.expire(request.id) is not None:
                    report.expired.append(request.id)
            except Exception:
                logger.exception("[%s] Failed to expire help request %s", self._name, request.id)
                report.failed.append(request.id)
        return report

    async def run(self) -> None:
        """Sweep every ``interval`` until cancelled."""
        while True:
            await asyncio.sleep(self._interval.total_seconds())
            try:
                await self.sweep()
            except Exception:
                logger.exception("[%s] Timeout sweep failed", self._name)
