"""Persistence adapters for finished test runs.

Implementations:
- FileStore (one JSON payload per run in the workspace)
"""
