"""Run accumulation: the per-test state machine.

This module reconciles the lifecycle events of one test run into a
deduplicated, ordered list of TestResult records and assembles the
final TestRun.

Per-fingerprint states follow a directed workflow:
- NotStarted → Running (test_started)
- Running → Recorded-Pass (test_finished)
- Running → Recorded-Fail (test_failed)

An orthogonal Ignored flag (test_assumption_failed, test_ignored) demotes
the eventual result to inactive. A genuinely ignored test never starts
nor finishes, so it never produces a result.
"""

import logging
import os
import platform
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from .extractors import TestMetadataExtractor
from .failure import FailureRenderer
from .fingerprint import Fingerprinter
from .metadata import MetadataResolver
from .models import (
    Failure,
    GlobalConfiguration,
    MetadataOverrides,
    Probe,
    TestIdentity,
    TestResult,
    TestRun,
)
from .ports import MetadataLookupPort

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


def collect_run_context() -> dict[str, Any]:
    """Describe the environment the run executed in."""
    return {
        "python.version": platform.python_version(),
        "python.implementation": platform.python_implementation(),
        "os.name": platform.system(),
        "os.version": platform.release(),
        "os.arch": platform.machine(),
        "cpu.count": os.cpu_count() or 0,
    }


class RunAccumulator:
    """Consumes the ordered events of a single run.

    One instance per run; state is never reused across runs. Not
    thread-safe on its own: ProbeListener serializes calls with a lock.
    """

    def __init__(
        self,
        configuration: GlobalConfiguration,
        lookup: MetadataLookupPort,
        resolver: MetadataResolver,
        renderer: FailureRenderer,
        fingerprinter: Fingerprinter | None = None,
        extractors: Sequence[TestMetadataExtractor] = (),
        clock: Clock = utc_now,
        probe: Probe | None = None,
        context_provider: Callable[[], Mapping[str, Any]] = collect_run_context,
    ):
        self.configuration = configuration
        self.lookup = lookup
        self.resolver = resolver
        self.renderer = renderer
        self.fingerprinter = fingerprinter or Fingerprinter()
        self.extractors = tuple(extractors)
        self.clock = clock
        self.probe = probe
        self.context_provider = context_provider

        self.run_started_at: datetime | None = None
        self.start_times: dict[str, datetime] = {}
        self.failures: set[str] = set()
        self.ignored: set[str] = set()
        self.recorded: set[str] = set()
        self.results: list[TestResult] = []
        self.inconsistencies: list[str] = []
        self._fingerprints: dict[TestIdentity, str] = {}
        self._owners: dict[str, TestIdentity] = {}
        self._overrides: dict[TestIdentity, MetadataOverrides] = {}

    def run_started(self) -> None:
        """Stamp the start of the run."""
        self.run_started_at = self.clock()

    def test_started(self, identity: TestIdentity, is_test: bool = True) -> None:
        """Record the start time of a leaf test. Container nodes are ignored."""
        if not is_test or not identity.is_leaf:
            logger.debug(f"Ignoring start of container node {identity}")
            return

        fingerprint = self.fingerprint_for(identity)
        self.start_times[fingerprint] = self.clock()
        self._notify(identity, "before")

    def test_finished(self, identity: TestIdentity) -> None:
        """Record a passing result unless the test already failed."""
        if not identity.is_leaf:
            return

        fingerprint = self.fingerprint_for(identity)
        if fingerprint in self.failures or fingerprint in self.recorded:
            logger.debug(f"Result already recorded for {identity}, ignoring finish")
            return

        self._record(identity, fingerprint, passed=True, message=None)

    def test_failed(self, identity: TestIdentity, failure: Failure) -> None:
        """Record a failing result. Suppresses any later finish of the test."""
        if not identity.is_leaf:
            logger.warning(
                f"Failure reported for container node {identity} is not recorded",
                extra={"failure_message": failure.message},
            )
            return

        fingerprint = self.fingerprint_for(identity)
        if fingerprint in self.recorded:
            logger.debug(f"Result already recorded for {identity}, ignoring failure")
            return

        self.failures.add(fingerprint)

        message = self.renderer.render(failure, test_type=identity.type_name)
        logger.info(self.renderer.render_log_entry(failure, message))

        self._record(identity, fingerprint, passed=False, message=message or None)

    def test_assumption_failed(
        self, identity: TestIdentity, failure: Failure | None = None
    ) -> None:
        """Flag the test so its upcoming finish is recorded as inactive."""
        if failure is not None:
            logger.debug(f"Assumption failed for {identity}: {failure.message}")
        self.ignored.add(self.fingerprint_for(identity))

    def test_ignored(self, identity: TestIdentity) -> None:
        """Flag a skipped test.

        The test framework fires neither start nor finish for a skipped
        test, so no result is ever produced for it.
        """
        self.ignored.add(self.fingerprint_for(identity))

    def finish(self) -> TestRun | None:
        """Assemble the run.

        Returns:
            The TestRun, or None if no result was recorded.
        """
        incomplete = set(self.start_times) - self.recorded
        if incomplete:
            logger.warning(
                f"{len(incomplete)} started test(s) never completed and are not reported"
            )

        if not self.results:
            logger.debug("No test result recorded, nothing to assemble")
            return None

        now = self.clock()
        started_at = self.run_started_at or now
        configuration = self.configuration

        return TestRun(
            project_api_id=configuration.project_api_id,
            project_version=configuration.project_version,
            pipeline=configuration.pipeline,
            stage=configuration.stage,
            duration_ms=_milliseconds(now - started_at),
            results=tuple(self.results),
            context=dict(self.context_provider()),
            probe=self.probe,
        )

    def fingerprint_for(self, identity: TestIdentity) -> str:
        """Fingerprint of a test, computed once per run."""
        fingerprint = self._fingerprints.get(identity)
        if fingerprint is None:
            key = self.resolver.key(self.overrides_for(identity))
            fingerprint = self.fingerprinter.fingerprint(identity, key)
            self._fingerprints[identity] = fingerprint
            owner = self._owners.setdefault(fingerprint, identity)
            if owner != identity:
                inconsistency = (
                    f"{identity} shares fingerprint with {owner} (key {key!r}), "
                    "only the first completed result is reported"
                )
                self.inconsistencies.append(inconsistency)
                logger.warning(inconsistency, extra={"fingerprint": fingerprint})
        return fingerprint

    def overrides_for(self, identity: TestIdentity) -> MetadataOverrides:
        """Metadata overrides of a test, looked up once per run."""
        overrides = self._overrides.get(identity)
        if overrides is None:
            try:
                overrides = self.lookup.lookup(identity)
            except Exception as e:
                logger.debug(f"Metadata lookup failed for {identity}: {e}")
                overrides = MetadataOverrides.none()
            self._overrides[identity] = overrides
        return overrides

    def _record(
        self,
        identity: TestIdentity,
        fingerprint: str,
        passed: bool,
        message: str | None,
    ) -> None:
        self._notify(identity, "after")

        metadata = self.resolver.resolve(identity, self.overrides_for(identity))
        active = metadata.active if metadata.active is not None else True
        if fingerprint in self.ignored:
            active = False

        result = TestResult(
            key=metadata.key,
            fingerprint=fingerprint,
            name=metadata.name,
            category=metadata.category,
            duration_ms=self._duration(identity, fingerprint),
            passed=passed,
            active=active,
            message=message,
            tags=metadata.tags,
            tickets=metadata.tickets,
            contributors=metadata.contributors,
            metadata=self._extract(identity),
        )

        self.results.append(result)
        self.recorded.add(fingerprint)

    def _duration(self, identity: TestIdentity, fingerprint: str) -> int:
        started_at = self.start_times.get(fingerprint)
        if started_at is None:
            inconsistency = f"No start time recorded for {identity}, duration set to 0"
            self.inconsistencies.append(inconsistency)
            logger.warning(inconsistency, extra={"fingerprint": fingerprint})
            return 0
        return _milliseconds(self.clock() - started_at)

    def _extract(self, identity: TestIdentity) -> dict[str, str]:
        metadata: dict[str, str] = {}
        for extractor in self.extractors:
            try:
                for name, value in extractor.extract(identity):
                    metadata[name] = value
            except Exception as e:
                logger.error(
                    f"Metadata extractor {type(extractor).__name__} failed for {identity}: {e}",
                    exc_info=True,
                )
        return metadata

    def _notify(self, identity: TestIdentity, hook: str) -> None:
        for extractor in self.extractors:
            try:
                getattr(extractor, hook)(identity)
            except Exception as e:
                logger.error(
                    f"Metadata extractor {type(extractor).__name__}.{hook} failed for {identity}: {e}",
                    exc_info=True,
                )


def _milliseconds(delta: timedelta) -> int:
    return max(0, round(delta / timedelta(milliseconds=1)))
