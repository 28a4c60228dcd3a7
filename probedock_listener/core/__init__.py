"""Core domain logic for the Probe Dock test listener.

This package contains zero external dependencies and represents
the pure business logic of the application. All adapters and
external integrations are handled by the adapters package.
"""

from .models import (
    DispatchResult,
    ErrorDetail,
    Failure,
    GlobalConfiguration,
    MetadataOverride,
    MetadataOverrides,
    Probe,
    StackFrame,
    TestIdentity,
    TestResult,
    TestRun,
)

__all__ = [
    "DispatchResult",
    "ErrorDetail",
    "Failure",
    "GlobalConfiguration",
    "MetadataOverride",
    "MetadataOverrides",
    "Probe",
    "StackFrame",
    "TestIdentity",
    "TestResult",
    "TestRun",
]
