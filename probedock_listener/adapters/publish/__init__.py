"""Publish adapters sending finished test runs to Probe Dock.

Implementations:
- HttpConnector (Probe Dock v1 publish API over httpx)
"""
