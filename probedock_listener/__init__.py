"""Probe Dock test listener.

Reconciles test lifecycle events into deduplicated test results and
saves or publishes them to a Probe Dock server.
"""

__version__ = "0.1.0"
