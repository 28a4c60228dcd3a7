"""Fake/mock implementations of core ports for testing.

These in-memory implementations allow core domain logic to be tested
without external dependencies:

- FakeClock: Manually advanced time source
- FakeMetadataLookupPort: Canned metadata overrides per test
- FakePersistencePort: Captured saved runs for assertion
- FakePublishPort: Captured published runs for assertion
"""

from .clock import FakeClock
from .lookup import FakeMetadataLookupPort
from .sinks import FakePersistencePort, FakePublishPort

__all__ = [
    "FakeClock",
    "FakeMetadataLookupPort",
    "FakePersistencePort",
    "FakePublishPort",
]
