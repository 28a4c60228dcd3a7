"""Pluggable metadata extractors.

An extractor is a capability object registered with the run accumulator.
It is notified before and after each test and contributes ordered
key/value pairs to the test's result metadata.
"""

from abc import ABC, abstractmethod

from .models import TestIdentity


class TestMetadataExtractor(ABC):
    """Contract for metadata extractors.

    Implementations must not raise for ordinary tests. An extractor that
    raises is logged and skipped by the accumulator.
    """

    __test__ = False

    def before(self, identity: TestIdentity) -> None:
        """Called when the test starts. No-op by default."""

    def after(self, identity: TestIdentity) -> None:
        """Called when the test completes, before its result is assembled."""

    @abstractmethod
    def extract(self, identity: TestIdentity) -> list[tuple[str, str]]:
        """Return key/value pairs describing the test, in output order."""


class StandardMetadataExtractor(TestMetadataExtractor):
    """Records the module, class and function of a test."""

    def extract(self, identity: TestIdentity) -> list[tuple[str, str]]:
        """Describe where the test is declared."""
        return [
            ("python.package", identity.namespace),
            ("python.type", identity.type_name),
            ("python.function", identity.method_name or ""),
        ]
