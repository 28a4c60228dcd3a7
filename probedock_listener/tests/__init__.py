"""Test suite for the Probe Dock test listener.

Organized into three categories:

1. core/: Unit tests for core domain logic
   - Minimal dependencies, fast execution
   - Uses in-memory fakes for ports

2. adapters/: Integration tests for adapter implementations
   - Tests against the filesystem, mocked HTTP transports and pytest reports
   - Validates adapter behavior and error handling

3. fakes/: Port implementations for testing
   - In-memory implementations of MetadataLookupPort, PersistencePort, etc.
   - Used by core unit tests
"""
