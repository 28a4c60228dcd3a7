"""Fan-out of a finished test run to the configured sinks."""

import logging
from collections.abc import Awaitable, Callable

from .models import DispatchResult, GlobalConfiguration, TestRun
from .ports import PersistencePort, PublishPort

logger = logging.getLogger(__name__)


class ResultSinkDispatcher:
    """Sends an assembled run to every enabled sink.

    Each sink is attempted independently: a failing sink never prevents
    the next one from running, and no sink error is propagated.
    """

    def __init__(
        self,
        configuration: GlobalConfiguration,
        store: PersistencePort | None = None,
        publisher: PublishPort | None = None,
    ):
        self.configuration = configuration
        self.store = store
        self.publisher = publisher

    async def dispatch(self, run: TestRun) -> DispatchResult:
        """Save and/or publish the run according to configuration.

        Returns:
            Which sinks were attempted, succeeded, failed or skipped.
        """
        sinks: list[tuple[str, Callable[[TestRun], Awaitable[None]] | None]] = []
        if self.configuration.save:
            sinks.append(("save", self.store.save if self.store is not None else None))
        if self.configuration.publish:
            sinks.append(
                ("publish", self.publisher.send if self.publisher is not None else None)
            )

        attempted: list[str] = []
        succeeded: list[str] = []
        failed: list[str] = []
        skipped: list[str] = []

        for name, send in sinks:
            if send is None:
                logger.error(f"Sink '{name}' is enabled but not configured, skipping")
                skipped.append(name)
                continue
            if not self.configuration.project_api_id:
                logger.error(
                    f"Sink '{name}' is enabled but no project API id is configured, skipping"
                )
                skipped.append(name)
                continue

            attempted.append(name)
            try:
                await send(run)
            except Exception as e:
                logger.error(
                    f"Could not {name} test run: {e}",
                    extra={"sink": name, "results": len(run.results)},
                    exc_info=True,
                )
                failed.append(name)
            else:
                logger.info(
                    f"Test run {'saved' if name == 'save' else 'published'} "
                    f"({len(run.results)} results)"
                )
                succeeded.append(name)

        return DispatchResult(
            attempted=tuple(attempted),
            succeeded=tuple(succeeded),
            failed=tuple(failed),
            skipped=tuple(skipped),
        )
