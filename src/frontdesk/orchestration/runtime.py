"""EscalationRuntime: wires the escalation core and owns its background tasks."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Awaitable, Callable

from frontdesk.core.config import AppSettings
from frontdesk.core.protocols import IHelpRequestStore, IKnowledgeStore, IRealtimeChannel
from frontdesk.core.types import Clock, utcnow
from frontdesk.escalation.coordinator import EscalationCoordinator
from frontdesk.escalation.dispatcher import NotificationDispatcher
from frontdesk.escalation.knowledge import KnowledgeBase, KnowledgeMatcher
from frontdesk.escalation.soft_state import DedupLedger, ResponseCache
from frontdesk.escalation.state_machine import HelpRequestStateMachine
from frontdesk.escalation.timeout_worker import TimeoutWorker
from frontdesk.orchestration.event_channel import EventChannel, EventLogger, pump

logger = logging.getLogger(__name__)


async def _every(interval: timedelta, job: Callable[[], object], name: str) -> None:
    while True:
        await asyncio.sleep(interval.total_seconds())
        try:
            job()
        except Exception:
            logger.exception("Periodic job %s failed", name)


class EscalationRuntime:
    """Builds every escalation component from settings and runs the timers.

    Components are exposed as attributes so the web layer and tests can
    reach them directly.
    """

    def __init__(
        self,
        *,
        settings: AppSettings,
        help_requests: IHelpRequestStore,
        knowledge_store: IKnowledgeStore,
        channel: IRealtimeChannel,
        clock: Clock = utcnow,
    ) -> None:
        esc = settings.escalation
        self.settings = settings
        self.help_requests = help_requests
        self.channel = channel
        self.events = EventChannel()
        self.cache = ResponseCache(ttl=timedelta(seconds=esc.response_cache_ttl_seconds), clock=clock)
        self.ledger = DedupLedger(ttl=timedelta(seconds=esc.dedup_ledger_ttl_seconds), clock=clock)
        self.knowledge = KnowledgeBase(
            store=knowledge_store,
            matcher=KnowledgeMatcher(
                ratio=esc.knowledge_match_ratio, min_word_length=esc.knowledge_min_word_length,
            ),
            events=self.events,
        )
        self.state_machine = HelpRequestStateMachine(
            store=help_requests, knowledge=self.knowledge, events=self.events, clock=clock,
        )
        self.dispatcher = NotificationDispatcher(
            channel=channel,
            ledger=self.ledger,
            cache=self.cache,
            events=self.events,
            session_prefix=settings.realtime.session_prefix,
        )
        self.coordinator = EscalationCoordinator(
            store=help_requests,
            state_machine=self.state_machine,
            knowledge=self.knowledge,
            cache=self.cache,
            ledger=self.ledger,
            config=esc,
            events=self.events,
            clock=clock,
        )
        timeout = settings.timeout
        self.timeout_workers = [
            TimeoutWorker(
                store=help_requests,
                state_machine=self.state_machine,
                threshold=timedelta(seconds=timeout.threshold_seconds),
                interval=timedelta(seconds=timeout.interval_seconds),
                name="timeout",
                clock=clock,
            )
        ]
        if timeout.secondary_enabled:
            self.timeout_workers.append(TimeoutWorker(
                store=help_requests,
                state_machine=self.state_machine,
                threshold=timedelta(seconds=timeout.secondary_threshold_seconds),
                interval=timedelta(seconds=timeout.secondary_interval_seconds),
                name="timeout-fast",
                clock=clock,
            ))
        self._dispatch_queue: asyncio.Queue | None = None
        self._audit_queue: asyncio.Queue | None = None
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        if self._tasks:
            return
        await self.knowledge.load()
        self._dispatch_queue = self.events.subscribe()
        self._audit_queue = self.events.subscribe()
        esc = self.settings.escalation
        jobs: list[tuple[str, Awaitable[None]]] = [
            ("dispatcher", pump(self._dispatch_queue, self.dispatcher)),
            ("event-logger", pump(self._audit_queue, EventLogger())),
            ("cache-sweep", _every(
                timedelta(seconds=esc.cache_sweep_interval_seconds), self.cache.sweep, "cache-sweep",
            )),
            ("ledger-sweep", _every(
                timedelta(seconds=esc.ledger_sweep_interval_seconds), self.ledger.sweep, "ledger-sweep",
            )),
        ]
        jobs.extend((w.name, w.run()) for w in self.timeout_workers)
        self._tasks = [asyncio.create_task(coro, name=name) for name, coro in jobs]
        logger.info("Escalation runtime started with %d background tasks", len(self._tasks))

    async def drain(self) -> None:
        """Wait until every published event has been handled."""
        for queue in (self._dispatch_queue, self._audit_queue):
            if queue is not None:
                await queue.join()

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for queue in (self._dispatch_queue, self._audit_queue):
            if queue is not None:
                self.events.unsubscribe(queue)
        self._dispatch_queue = self._audit_queue = None
        logger.info("Escalation runtime stopped")
