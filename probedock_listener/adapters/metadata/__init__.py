"""Metadata lookup adapters.

Implementations:
- Reflection (imports the test module and reads @probe overrides)
"""
