"""Port interfaces for the Probe Dock test listener.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Port Interface Categories:

1. **Driven Ports** (core calls out to adapters)
   - MetadataLookupPort: Find declarative overrides for a test
   - PersistencePort: Save a finished run locally
   - PublishPort: Send a finished run to the Probe Dock server

2. **Driving Ports** (adapters/external systems call into core)
   - RunListenerPort: Test lifecycle events from the test framework
"""

from abc import ABC, abstractmethod

from .models import (
    DispatchResult,
    Failure,
    MetadataOverrides,
    TestIdentity,
    TestRun,
)


# ============================================================================
# DRIVEN PORTS (Core calls out to adapters)
# ============================================================================


class MetadataLookupPort(ABC):
    """Port for retrieving declarative metadata of a test.

    A miss is a normal outcome, not an error: implementations return
    MetadataOverrides.none() when the test or its overrides cannot be found.
    """

    @abstractmethod
    def lookup(self, identity: TestIdentity) -> MetadataOverrides:
        """Find the method and class overrides of a test.

        Args:
            identity: Identity of a leaf test.

        Returns:
            The overrides found, with None for each missing level.
        """


class PersistencePort(ABC):
    """Port for saving a finished test run locally.

    Implementations must handle:
    - Creating their storage location on first use
    - Serializing the run into their own format
    """

    @abstractmethod
    async def save(self, run: TestRun) -> None:
        """Persist a test run.

        Args:
            run: The assembled test run.

        Raises:
            StorageError: If the run cannot be written.
        """


class PublishPort(ABC):
    """Port for sending a finished test run to the Probe Dock server.

    Implementations must handle:
    - Authentication
    - Request timeouts
    """

    @abstractmethod
    async def send(self, run: TestRun) -> None:
        """Publish a test run.

        Args:
            run: The assembled test run.

        Raises:
            PublishError: If the server is unreachable or rejects the run.
        """


# ============================================================================
# DRIVING PORTS (Adapters/external systems call into core)
# ============================================================================


class RunListenerPort(ABC):
    """Port receiving the lifecycle events of one test run.

    Driving port: a test framework adapter (e.g. the pytest plugin) calls
    these methods in event order. RunStarted precedes all other events
    and run_finished is called last.

    Implementations must never raise into the calling framework: a
    reporting failure must not fail the test run itself.
    """

    @abstractmethod
    def run_started(self) -> None:
        """The test run started."""

    @abstractmethod
    def test_started(self, identity: TestIdentity, is_test: bool = True) -> None:
        """A node of the test tree started.

        Args:
            identity: Identity of the node.
            is_test: False for suite/container nodes, which are ignored.
        """

    @abstractmethod
    def test_finished(self, identity: TestIdentity) -> None:
        """A test finished, whatever its outcome."""

    @abstractmethod
    def test_failed(self, identity: TestIdentity, failure: Failure) -> None:
        """A test failed."""

    @abstractmethod
    def test_assumption_failed(
        self, identity: TestIdentity, failure: Failure | None = None
    ) -> None:
        """A test's precondition was not met. A finish event follows."""

    @abstractmethod
    def test_ignored(self, identity: TestIdentity) -> None:
        """A test was skipped before execution. No other event follows."""

    @abstractmethod
    async def run_finished(self) -> DispatchResult | None:
        """The test run finished.

        Returns:
            The dispatch summary, or None when nothing was dispatched.
        """
