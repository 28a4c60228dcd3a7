"""Tests for the run accumulator state machine.

Covers deduplication, failure-over-finish precedence, ignored and
assumption-failed tests, incomplete tests, and extractor handling.
"""

import logging

import pytest

from probedock_listener.core.accumulator import RunAccumulator
from probedock_listener.core.extractors import (
    StandardMetadataExtractor,
    TestMetadataExtractor,
)
from probedock_listener.core.failure import FailureRenderer
from probedock_listener.core.fingerprint import Fingerprinter
from probedock_listener.core.metadata import MetadataResolver
from probedock_listener.core.models import (
    Failure,
    GlobalConfiguration,
    MetadataOverride,
    Probe,
    TestIdentity,
)
from probedock_listener.tests.fakes import FakeClock, FakeMetadataLookupPort

LOGIN = TestIdentity("shop.tests", "shop.tests.test_auth.TestLogin", "test_valid_user")
LOGOUT = TestIdentity("shop.tests", "shop.tests.test_auth.TestLogin", "test_logout")
SUITE = TestIdentity("shop.tests", "shop.tests.test_auth.TestLogin")


class RecordingExtractor(TestMetadataExtractor):
    """Extractor that records its calls."""

    def __init__(self):
        self.calls: list[tuple[str, TestIdentity]] = []

    def before(self, identity: TestIdentity) -> None:
        self.calls.append(("before", identity))

    def after(self, identity: TestIdentity) -> None:
        self.calls.append(("after", identity))

    def extract(self, identity: TestIdentity) -> list[tuple[str, str]]:
        return [("recorded", "yes")]


class BrokenExtractor(TestMetadataExtractor):
    """Extractor failing at every step."""

    def before(self, identity: TestIdentity) -> None:
        raise RuntimeError("before broke")

    def extract(self, identity: TestIdentity) -> list[tuple[str, str]]:
        raise RuntimeError("extract broke")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def lookup() -> FakeMetadataLookupPort:
    return FakeMetadataLookupPort()


@pytest.fixture
def configuration() -> GlobalConfiguration:
    return GlobalConfiguration(
        project_api_id="shop-api",
        project_version="1.2.0",
        pipeline="ci",
        stage="test",
    )


def make_accumulator(
    configuration: GlobalConfiguration,
    lookup: FakeMetadataLookupPort,
    clock: FakeClock,
    extractors=(),
) -> RunAccumulator:
    return RunAccumulator(
        configuration=configuration,
        lookup=lookup,
        resolver=MetadataResolver(configuration),
        renderer=FailureRenderer(),
        extractors=extractors,
        clock=clock,
        probe=Probe("probedock-listener", "0.1.0"),
        context_provider=lambda: {"os.name": "Linux"},
    )


@pytest.fixture
def accumulator(configuration, lookup, clock) -> RunAccumulator:
    acc = make_accumulator(configuration, lookup, clock)
    acc.run_started()
    return acc


# ============================================================================
# Passing and failing tests
# ============================================================================


def test_passing_test(accumulator: RunAccumulator, clock: FakeClock) -> None:
    """Started then finished records one passing result."""
    accumulator.test_started(LOGIN)
    clock.advance(50)
    accumulator.test_finished(LOGIN)

    [result] = accumulator.results
    assert result.passed is True
    assert result.active is True
    assert result.duration_ms == 50
    assert result.message is None
    assert result.category == "unit"
    assert result.name == "Test Login: Test Valid User"
    assert result.fingerprint == Fingerprinter.fingerprint(LOGIN)


def test_failed_then_finished_records_one_failure(
    accumulator: RunAccumulator, clock: FakeClock
) -> None:
    """A finish after a failure never produces a second result."""
    accumulator.test_started(LOGIN)
    clock.advance(10)
    accumulator.test_failed(LOGIN, Failure(message="expected true"))
    clock.advance(5)
    accumulator.test_finished(LOGIN)

    [result] = accumulator.results
    assert result.passed is False
    assert result.duration_ms == 10
    assert result.message == "Failure message: expected true"


def test_second_failure_is_ignored(accumulator: RunAccumulator) -> None:
    """The first outcome wins."""
    accumulator.test_started(LOGIN)
    accumulator.test_failed(LOGIN, Failure(message="first"))
    accumulator.test_failed(LOGIN, Failure(message="second"))

    [result] = accumulator.results
    assert result.message == "Failure message: first"


def test_failure_after_pass_is_ignored(accumulator: RunAccumulator) -> None:
    """A failure reported after a recorded pass does not add a result."""
    accumulator.test_started(LOGIN)
    accumulator.test_finished(LOGIN)
    accumulator.test_failed(LOGIN, Failure(message="late"))

    [result] = accumulator.results
    assert result.passed is True


def test_duplicate_finish_is_deduplicated(accumulator: RunAccumulator) -> None:
    """Finishing the same test twice yields one result."""
    accumulator.test_started(LOGIN)
    accumulator.test_finished(LOGIN)
    accumulator.test_finished(LOGIN)

    assert len(accumulator.results) == 1


def test_results_follow_completion_order(accumulator: RunAccumulator) -> None:
    """Results are ordered by the time they were recorded."""
    accumulator.test_started(LOGIN)
    accumulator.test_started(LOGOUT)
    accumulator.test_finished(LOGOUT)
    accumulator.test_finished(LOGIN)

    assert [r.fingerprint for r in accumulator.results] == [
        Fingerprinter.fingerprint(LOGOUT),
        Fingerprinter.fingerprint(LOGIN),
    ]


def test_failure_is_logged(accumulator: RunAccumulator, caplog) -> None:
    """Rendered failures are mirrored to the log."""
    accumulator.test_started(LOGIN)
    with caplog.at_level(logging.INFO, logger="probedock_listener.core.accumulator"):
        accumulator.test_failed(LOGIN, Failure(message="expected true", header="LOGIN"))

    assert "LOGIN\nFailure message: expected true" in caplog.text


# ============================================================================
# Ignored and assumption-failed tests
# ============================================================================


def test_assumption_failure_records_inactive_pass(accumulator: RunAccumulator) -> None:
    """An unmet assumption yields a passing but inactive result."""
    accumulator.test_started(LOGIN)
    accumulator.test_assumption_failed(LOGIN, Failure(message="no network"))
    accumulator.test_finished(LOGIN)

    [result] = accumulator.results
    assert result.passed is True
    assert result.active is False


def test_ignored_test_produces_no_result(accumulator: RunAccumulator) -> None:
    """A skipped test never starts, so nothing is recorded."""
    accumulator.test_ignored(LOGIN)

    assert accumulator.results == []
    assert accumulator.finish() is None


def test_inactive_override(accumulator: RunAccumulator, lookup: FakeMetadataLookupPort) -> None:
    """An explicit active=False override marks the result inactive."""
    lookup.set_overrides(LOGIN, method=MetadataOverride(active=False))

    accumulator.test_started(LOGIN)
    accumulator.test_finished(LOGIN)

    assert accumulator.results[0].active is False


# ============================================================================
# Container nodes and inconsistent streams
# ============================================================================


def test_container_nodes_are_ignored(accumulator: RunAccumulator) -> None:
    """Suite and class nodes never produce results."""
    accumulator.test_started(SUITE)
    accumulator.test_started(LOGIN, is_test=False)
    accumulator.test_finished(SUITE)
    accumulator.test_failed(SUITE, Failure(message="setup broke"))

    assert accumulator.results == []
    assert accumulator.start_times == {}


def test_missing_start_records_zero_duration(accumulator: RunAccumulator) -> None:
    """A finish without start is recorded with duration 0 and noted."""
    accumulator.test_finished(LOGIN)

    [result] = accumulator.results
    assert result.duration_ms == 0
    assert len(accumulator.inconsistencies) == 1
    assert str(LOGIN) in accumulator.inconsistencies[0]


def test_started_only_test_is_dropped(accumulator: RunAccumulator, caplog) -> None:
    """A test that never completes is not reported."""
    accumulator.test_started(LOGIN)
    accumulator.test_started(LOGOUT)
    accumulator.test_finished(LOGOUT)

    with caplog.at_level(logging.WARNING):
        run = accumulator.finish()

    assert run is not None
    assert len(run.results) == 1
    assert "1 started test(s) never completed" in caplog.text


# ============================================================================
# Metadata lookup
# ============================================================================


def test_explicit_key_drives_fingerprint(
    accumulator: RunAccumulator, lookup: FakeMetadataLookupPort
) -> None:
    """The fingerprint of a keyed test comes from its key."""
    lookup.set_overrides(LOGIN, method=MetadataOverride(key="login-valid"))

    accumulator.test_started(LOGIN)
    accumulator.test_finished(LOGIN)

    [result] = accumulator.results
    assert result.key == "login-valid"
    assert result.fingerprint == Fingerprinter.fingerprint(LOGIN, "login-valid")


def test_lookup_happens_once_per_test(
    accumulator: RunAccumulator, lookup: FakeMetadataLookupPort
) -> None:
    """Overrides are looked up once and reused for every event."""
    accumulator.test_started(LOGIN)
    accumulator.test_assumption_failed(LOGIN)
    accumulator.test_finished(LOGIN)

    assert lookup.lookup_calls == [LOGIN]


def test_lookup_failure_falls_back_to_defaults(
    accumulator: RunAccumulator, lookup: FakeMetadataLookupPort
) -> None:
    """A failing lookup is treated as "no overrides"."""
    lookup.set_should_fail(True)

    accumulator.test_started(LOGIN)
    accumulator.test_finished(LOGIN)

    [result] = accumulator.results
    assert result.category == "unit"
    assert result.key is None


def test_overrides_flow_into_result(
    accumulator: RunAccumulator, lookup: FakeMetadataLookupPort
) -> None:
    """Resolved metadata is copied into the result."""
    lookup.set_overrides(
        LOGIN,
        method=MetadataOverride(name="Valid user logs in", tags=frozenset({"auth"})),
        cls=MetadataOverride(category="integration", tickets=frozenset({"SHOP-12"})),
    )

    accumulator.test_started(LOGIN)
    accumulator.test_finished(LOGIN)

    [result] = accumulator.results
    assert result.name == "Valid user logs in"
    assert result.category == "integration"
    assert result.tags == {"auth"}
    assert result.tickets == {"SHOP-12"}


# ============================================================================
# Extractors
# ============================================================================


def test_standard_extractor_metadata(configuration, lookup, clock) -> None:
    """The standard extractor describes where the test lives."""
    acc = make_accumulator(configuration, lookup, clock, [StandardMetadataExtractor()])
    acc.run_started()
    acc.test_started(LOGIN)
    acc.test_finished(LOGIN)

    assert dict(acc.results[0].metadata) == {
        "python.package": "shop.tests",
        "python.type": "shop.tests.test_auth.TestLogin",
        "python.function": "test_valid_user",
    }


def test_extractor_hooks_are_called(configuration, lookup, clock) -> None:
    """before() runs at start and after() at completion."""
    extractor = RecordingExtractor()
    acc = make_accumulator(configuration, lookup, clock, [extractor])
    acc.run_started()
    acc.test_started(LOGIN)
    acc.test_finished(LOGIN)

    assert extractor.calls == [("before", LOGIN), ("after", LOGIN)]
    assert acc.results[0].metadata["recorded"] == "yes"


def test_broken_extractor_is_skipped(configuration, lookup, clock) -> None:
    """A failing extractor does not prevent the result or other extractors."""
    acc = make_accumulator(
        configuration, lookup, clock, [BrokenExtractor(), RecordingExtractor()]
    )
    acc.run_started()
    acc.test_started(LOGIN)
    acc.test_finished(LOGIN)

    [result] = acc.results
    assert dict(result.metadata) == {"recorded": "yes"}


# ============================================================================
# Run assembly
# ============================================================================


def test_finish_assembles_run(accumulator: RunAccumulator, clock: FakeClock) -> None:
    """The run carries configuration, duration, context and probe."""
    accumulator.test_started(LOGIN)
    clock.advance(30)
    accumulator.test_finished(LOGIN)
    clock.advance(20)

    run = accumulator.finish()

    assert run is not None
    assert run.project_api_id == "shop-api"
    assert run.project_version == "1.2.0"
    assert run.pipeline == "ci"
    assert run.stage == "test"
    assert run.duration_ms == 50
    assert dict(run.context) == {"os.name": "Linux"}
    assert run.probe == Probe("probedock-listener", "0.1.0")
    assert len(run.results) == 1


def test_finish_empty_run(accumulator: RunAccumulator) -> None:
    """No recorded result means no run."""
    assert accumulator.finish() is None


# ============================================================================
# Fingerprint collisions and empty failures
# ============================================================================


def test_shared_key_across_parametrized_cases_is_reported(
    accumulator: RunAccumulator, lookup: FakeMetadataLookupPort, caplog
) -> None:
    """Two cases resolving to one keyed fingerprint are flagged, not silently merged."""
    first = TestIdentity("shop.tests", "shop.tests.test_auth.TestLogin", "test_param[1]")
    second = TestIdentity("shop.tests", "shop.tests.test_auth.TestLogin", "test_param[2]")
    lookup.set_overrides(first, method=MetadataOverride(key="k1"))
    lookup.set_overrides(second, method=MetadataOverride(key="k1"))

    with caplog.at_level(logging.WARNING):
        for identity in (first, second):
            accumulator.test_started(identity)
            accumulator.test_finished(identity)

    assert [r.name for r in accumulator.results] == ["Test Login: Test Param [1]"]
    assert len(accumulator.inconsistencies) == 1
    assert str(second) in accumulator.inconsistencies[0]
    assert str(first) in accumulator.inconsistencies[0]
    assert "shares fingerprint" in caplog.text


def test_same_identity_never_reported_as_collision(
    accumulator: RunAccumulator, lookup: FakeMetadataLookupPort
) -> None:
    """Repeated events of one keyed test are not a collision."""
    lookup.set_overrides(LOGIN, method=MetadataOverride(key="login-valid"))

    accumulator.test_started(LOGIN)
    accumulator.test_assumption_failed(LOGIN)
    accumulator.test_finished(LOGIN)

    assert accumulator.inconsistencies == []


def test_failure_without_details_has_no_message(accumulator: RunAccumulator) -> None:
    """A failure with neither message nor error leaves the message unset."""
    accumulator.test_started(LOGIN)
    accumulator.test_failed(LOGIN, Failure(message=None))

    [result] = accumulator.results
    assert result.passed is False
    assert result.message is None
