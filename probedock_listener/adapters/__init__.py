"""External adapters for the Probe Dock test listener.

This package contains all external dependencies (pytest, httpx, the
filesystem, module reflection) and provides implementations of the core
port interfaces.

Adapter Organization:

- metadata/: Adapters resolving declarative test metadata (@probe reflection)
- storage/: Adapters persisting finished runs (JSON files)
- publish/: Adapters sending finished runs to the Probe Dock server (HTTP)
- pytest_plugin: Event source translating pytest hooks into listener events
- serialization: Wire representation shared by storage and publish
"""
