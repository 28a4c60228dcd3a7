"""pytest event source adapter.

Translates pytest's runtest hooks into RunListenerPort events.

Usage:
    pytest -p probedock_listener.adapters.pytest_plugin --probedock

Phase reports map onto listener events as follows:
- setup passed → test_started
- setup skipped (skip marker, skipping fixture) → test_ignored
- setup failed → test_started, test_failed
- call failed → test_failed
- call skipped (pytest.skip() in the test, xfail) → test_assumption_failed
- teardown failed → test_failed
- teardown → test_finished (suppressed by the core after a failure)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import pytest

from probedock_listener.annotations import get_override
from probedock_listener.core.filters import TestFilter
from probedock_listener.core.models import (
    ErrorDetail,
    Failure,
    MetadataOverrides,
    TestIdentity,
)
from probedock_listener.core.ports import RunListenerPort
from probedock_listener.main import build_filter, build_listener, close_listener

logger = logging.getLogger(__name__)

PLUGIN_NAME = "probedock-listener"


def identity_for_item(item: pytest.Item) -> TestIdentity:
    """Build the identity of a collected test item."""
    module = getattr(item, "module", None)
    if module is None:
        return identity_from_nodeid(item.nodeid)

    module_name = module.__name__
    cls = getattr(item, "cls", None)
    type_name = f"{module_name}.{cls.__qualname__}" if cls is not None else module_name
    return TestIdentity(
        namespace=module_name.rpartition(".")[0],
        type_name=type_name,
        method_name=item.name,
    )


def identity_from_nodeid(nodeid: str) -> TestIdentity:
    """Best-effort identity for a node id when the item is not available.

    Example: "tests/test_login.py::TestLogin::test_ok[1]" gives type
    "tests.test_login.TestLogin" and method "test_ok[1]".
    """
    path, *names = nodeid.split("::")
    module_name = path.removesuffix(".py").replace("/", ".").replace("\\", ".")
    method_name = names.pop() if names else None
    type_name = ".".join([module_name, *names])
    return TestIdentity(
        namespace=module_name.rpartition(".")[0],
        type_name=type_name,
        method_name=method_name,
    )


def overrides_for_item(item: pytest.Item) -> MetadataOverrides:
    """Read @probe overrides straight from the collected objects."""
    function = getattr(item, "function", None)
    cls = getattr(item, "cls", None)
    return MetadataOverrides(
        method=get_override(function) if function is not None else None,
        cls=get_override(cls) if cls is not None else None,
    )


class ProbeDockPlugin:
    """pytest plugin object forwarding test events to a listener."""

    def __init__(
        self,
        listener: RunListenerPort,
        test_filter: TestFilter | None = None,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ):
        self.listener = listener
        self.test_filter = test_filter
        self.on_close = on_close
        self._identities: dict[str, TestIdentity] = {}
        self._errors: dict[tuple[str, str], BaseException] = {}
        self._started: set[str] = set()

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        self.listener.run_started()

    def pytest_collection_modifyitems(
        self, session: pytest.Session, config: pytest.Config, items: list[pytest.Item]
    ) -> None:
        """Deselect the items rejected by the configured filters."""
        if self.test_filter is None or not self.test_filter.filters:
            return

        selected = []
        deselected = []
        for item in items:
            if self.test_filter.should_run(identity_for_item(item), overrides_for_item(item)):
                selected.append(item)
            else:
                deselected.append(item)

        if deselected:
            logger.info(f"Probe Dock filters deselected {len(deselected)} test(s)")
            config.hook.pytest_deselected(items=deselected)
            items[:] = selected

    def pytest_runtest_protocol(self, item: pytest.Item, nextitem: pytest.Item | None) -> None:
        self._identities[item.nodeid] = identity_for_item(item)

    def pytest_runtest_makereport(self, item: pytest.Item, call: pytest.CallInfo) -> None:
        if call.excinfo is not None:
            self._errors[(item.nodeid, call.when)] = call.excinfo.value

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        """Translate one phase report into listener events."""
        nodeid = report.nodeid
        identity = self._identities.get(nodeid) or identity_from_nodeid(nodeid)

        if report.when == "setup":
            if report.skipped:
                self.listener.test_ignored(identity)
                return
            self.listener.test_started(identity)
            self._started.add(nodeid)
            if report.failed:
                self.listener.test_failed(identity, self._failure(report))

        elif report.when == "call":
            if report.failed:
                self.listener.test_failed(identity, self._failure(report))
            elif report.skipped:
                self.listener.test_assumption_failed(identity, self._failure(report))

        elif report.when == "teardown":
            if report.failed:
                self.listener.test_failed(identity, self._failure(report))
            if nodeid in self._started:
                self._started.discard(nodeid)
                self.listener.test_finished(identity)
            self._identities.pop(nodeid, None)
            for when in ("setup", "call", "teardown"):
                self._errors.pop((nodeid, when), None)

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        asyncio.run(self._finish())

    async def _finish(self) -> None:
        try:
            await self.listener.run_finished()
        finally:
            if self.on_close is not None:
                await self.on_close()

    def _failure(self, report: pytest.TestReport) -> Failure:
        error = self._errors.pop((report.nodeid, report.when), None)
        if error is None:
            return Failure(message=report.longreprtext or None, header=report.nodeid)
        return Failure(
            message=str(error) or None,
            error=ErrorDetail.from_exception(error),
            header=report.nodeid,
        )


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("probedock", "Probe Dock test reporting")
    group.addoption(
        "--probedock",
        action="store_true",
        default=False,
        help="Report test results to Probe Dock (configured via PROBEDOCK_* variables)",
    )
    group.addoption(
        "--probedock-category",
        default=None,
        help="Category of tests that do not declare one",
    )


def pytest_configure(config: pytest.Config) -> None:
    if not config.getoption("probedock"):
        return

    category = config.getoption("probedock_category")
    listener = build_listener(fallback_category=category)
    config.pluginmanager.register(
        ProbeDockPlugin(
            listener,
            test_filter=build_filter(listener.configuration, category),
            on_close=lambda: close_listener(listener),
        ),
        PLUGIN_NAME,
    )
