"""Driving entry point receiving test lifecycle events.

ProbeListener implements RunListenerPort. It owns one RunAccumulator per
run, serializes event handling, and hands the finished run to the
ResultSinkDispatcher.

Nothing raised while handling an event escapes to the calling test
framework: a reporting error must never surface as a test failure.
"""

import logging
import threading
from collections.abc import Callable, Iterable

from .accumulator import RunAccumulator
from .dispatcher import ResultSinkDispatcher
from .events import (
    RunFinished,
    RunStarted,
    TestAssumptionFailed,
    TestEvent,
    TestFailed,
    TestFinished,
    TestIgnored,
    TestStarted,
)
from .models import DispatchResult, Failure, GlobalConfiguration, TestIdentity
from .ports import RunListenerPort

logger = logging.getLogger(__name__)


class ProbeListener(RunListenerPort):
    """Reconciles test events into a TestRun and dispatches it.

    Each event-handling operation runs under a single coarse lock so that
    hosts delivering events from several threads keep the accumulator's
    invariants (one result per test, failure wins over finish).
    """

    def __init__(
        self,
        configuration: GlobalConfiguration,
        accumulator_factory: Callable[[], RunAccumulator],
        dispatcher: ResultSinkDispatcher,
    ):
        self.configuration = configuration
        self.accumulator_factory = accumulator_factory
        self.dispatcher = dispatcher
        self._accumulator: RunAccumulator | None = None
        self._lock = threading.Lock()

    @property
    def accumulator(self) -> RunAccumulator | None:
        """Accumulator of the run in progress, if any."""
        return self._accumulator

    def run_started(self) -> None:
        """Start a fresh run."""
        if self.configuration.disabled:
            return
        with self._lock:
            try:
                self._accumulator = self.accumulator_factory()
                self._accumulator.run_started()
            except Exception as e:
                logger.error(f"Failed to start test run: {e}", exc_info=True)

    def test_started(self, identity: TestIdentity, is_test: bool = True) -> None:
        """Forward a start event."""
        self._forward("test_started", identity, is_test)

    def test_finished(self, identity: TestIdentity) -> None:
        """Forward a finish event."""
        self._forward("test_finished", identity)

    def test_failed(self, identity: TestIdentity, failure: Failure) -> None:
        """Forward a failure event."""
        self._forward("test_failed", identity, failure)

    def test_assumption_failed(
        self, identity: TestIdentity, failure: Failure | None = None
    ) -> None:
        """Forward an assumption failure."""
        self._forward("test_assumption_failed", identity, failure)

    def test_ignored(self, identity: TestIdentity) -> None:
        """Forward a skip."""
        self._forward("test_ignored", identity)

    async def run_finished(self) -> DispatchResult | None:
        """Assemble the run and dispatch it to the enabled sinks.

        A run without any recorded result is a no-op.
        """
        if self.configuration.disabled:
            return None

        with self._lock:
            accumulator, self._accumulator = self._accumulator, None
            if accumulator is None:
                logger.warning("Test run finished without having started")
                return None
            try:
                run = accumulator.finish()
            except Exception as e:
                logger.error(f"Failed to assemble test run: {e}", exc_info=True)
                return None

        if run is None:
            return None

        try:
            return await self.dispatcher.dispatch(run)
        except Exception as e:
            logger.error(f"Failed to dispatch test run: {e}", exc_info=True)
            return None

    def handle(self, event: RunStarted | TestEvent) -> None:
        """Apply one event. RunFinished must be awaited via run_finished()."""
        if isinstance(event, RunStarted):
            self.run_started()
        elif isinstance(event, TestStarted):
            self.test_started(event.identity, event.is_test)
        elif isinstance(event, TestFinished):
            self.test_finished(event.identity)
        elif isinstance(event, TestFailed):
            self.test_failed(event.identity, event.failure)
        elif isinstance(event, TestAssumptionFailed):
            self.test_assumption_failed(event.identity, event.failure)
        elif isinstance(event, TestIgnored):
            self.test_ignored(event.identity)
        elif isinstance(event, RunFinished):
            logger.error("RunFinished must be delivered through run_finished()")
        else:
            logger.error(f"Unknown test event: {event!r}")

    async def replay(
        self, events: Iterable[RunStarted | TestEvent | RunFinished]
    ) -> DispatchResult | None:
        """Apply a complete event stream ending with RunFinished."""
        result = None
        for event in events:
            if isinstance(event, RunFinished):
                result = await self.run_finished()
            else:
                self.handle(event)
        return result

    def _forward(self, operation: str, *args: object) -> None:
        if self.configuration.disabled:
            return
        with self._lock:
            try:
                if self._accumulator is None:
                    logger.warning(
                        f"Received {operation} before the run started, starting it now"
                    )
                    self._accumulator = self.accumulator_factory()
                    self._accumulator.run_started()
                getattr(self._accumulator, operation)(*args)
            except Exception as e:
                logger.error(f"Failed to handle {operation}: {e}", exc_info=True)
