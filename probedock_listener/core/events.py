"""Test lifecycle events.

A test framework adapter may either call the RunListenerPort methods
directly or build these events and replay them through
ProbeListener.handle().
"""

from dataclasses import dataclass
from typing import TypeAlias

from .models import Failure, TestIdentity


@dataclass(frozen=True)
class RunStarted:
    """The run started. Always the first event."""


@dataclass(frozen=True)
class TestStarted:
    """A node of the test tree started."""

    __test__ = False

    identity: TestIdentity
    is_test: bool = True


@dataclass(frozen=True)
class TestFinished:
    """A test finished, whatever its outcome."""

    __test__ = False

    identity: TestIdentity


@dataclass(frozen=True)
class TestFailed:
    """A test failed."""

    __test__ = False

    identity: TestIdentity
    failure: Failure


@dataclass(frozen=True)
class TestAssumptionFailed:
    """A test's precondition was not met."""

    __test__ = False

    identity: TestIdentity
    failure: Failure | None = None


@dataclass(frozen=True)
class TestIgnored:
    """A test was skipped before execution."""

    __test__ = False

    identity: TestIdentity


@dataclass(frozen=True)
class RunFinished:
    """The run finished. Always the last event."""


TestEvent: TypeAlias = (
    TestStarted | TestFinished | TestFailed | TestAssumptionFailed | TestIgnored
)
