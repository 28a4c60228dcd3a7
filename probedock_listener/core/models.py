"""Domain models for the Probe Dock test listener.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain.
"""

import re
import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType, TracebackType
from typing import Any

PARAMETER_SUFFIX = re.compile(r"\[.*\]")


@dataclass(frozen=True)
class TestIdentity:
    """Identity of a node in the test tree.

    Attributes:
        namespace: Enclosing package of the declaring module ("" at top level).
        type_name: Fully-qualified declaring type. For a test method this is
            the module path plus the class qualname; for a module-level test
            function it is the module path alone.
        method_name: Test function name, including any parametrization
            suffix. None marks a container (suite, class or module) node.
    """

    __test__ = False

    namespace: str
    type_name: str
    method_name: str | None = None

    @property
    def is_leaf(self) -> bool:
        """True for an executable test, False for a container node."""
        return self.method_name is not None

    @property
    def simple_type_name(self) -> str:
        """Last dotted segment of the declaring type."""
        return self.type_name.rsplit(".", 1)[-1]

    @property
    def base_method_name(self) -> str | None:
        """Method name with the parametrization suffix removed."""
        if self.method_name is None:
            return None
        return PARAMETER_SUFFIX.sub("", self.method_name)

    def __str__(self) -> str:
        if self.method_name is None:
            return self.type_name
        return f"{self.type_name}::{self.method_name}"


@dataclass(frozen=True)
class MetadataOverride:
    """Declarative metadata attached to a test method or class.

    Every field is optional. None (or an empty collection) means the
    value is deferred to the next precedence level.
    """

    key: str | None = None
    name: str | None = None
    category: str | None = None
    tags: frozenset[str] = field(default_factory=frozenset)
    tickets: frozenset[str] = field(default_factory=frozenset)
    contributors: frozenset[str] = field(default_factory=frozenset)
    active: bool | None = None

    def __post_init__(self) -> None:
        """Normalize collection fields to frozensets."""
        for name in ("tags", "tickets", "contributors"):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value))


@dataclass(frozen=True)
class MetadataOverrides:
    """Outcome of a metadata lookup: optional method and class overrides."""

    method: MetadataOverride | None = None
    cls: MetadataOverride | None = None

    @classmethod
    def none(cls) -> "MetadataOverrides":
        """The "not found" outcome."""
        return cls()


@dataclass(frozen=True)
class GlobalConfiguration:
    """Process-wide configuration, immutable for the duration of a run.

    Built once at process start (see config.Settings.to_configuration)
    and passed explicitly to every component that needs it.
    """

    category: str | None = None
    tags: frozenset[str] = field(default_factory=frozenset)
    tickets: frozenset[str] = field(default_factory=frozenset)
    contributors: frozenset[str] = field(default_factory=frozenset)
    publish: bool = False
    save: bool = False
    disabled: bool = False
    project_api_id: str | None = None
    project_version: str | None = None
    pipeline: str | None = None
    stage: str | None = None
    full_stack_traces: bool = True
    filters: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Normalize collection fields to immutable types."""
        for name in ("tags", "tickets", "contributors"):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value))
        if not isinstance(self.filters, tuple):
            object.__setattr__(self, "filters", tuple(self.filters))


@dataclass(frozen=True)
class StackFrame:
    """A single frame in a stack trace."""

    type_name: str
    method: str
    filename: str | None
    lineno: int | None

    def __str__(self) -> str:
        return f"{self.type_name}.{self.method}({self.filename}:{self.lineno})"


@dataclass(frozen=True)
class ErrorDetail:
    """An error with its stack frames and optional cause."""

    type_name: str
    message: str
    frames: tuple[StackFrame, ...] = ()
    cause: "ErrorDetail | None" = None

    @classmethod
    def from_exception(
        cls, exc: BaseException, _seen: frozenset[int] = frozenset()
    ) -> "ErrorDetail":
        """Build an ErrorDetail from a raised exception.

        The frame type is the defining module plus the class part of the
        function's qualified name, so frames of a test method report the
        same type as the test's TestIdentity.type_name.
        """
        cause = exc.__cause__
        if cause is None and not exc.__suppress_context__:
            cause = exc.__context__
        seen = _seen | {id(exc)}
        return cls(
            type_name=_qualified_type_name(type(exc)),
            message=str(exc),
            frames=_frames_from_traceback(exc.__traceback__),
            cause=(
                cls.from_exception(cause, seen)
                if cause is not None and id(cause) not in seen
                else None
            ),
        )


def _qualified_type_name(exc_type: type) -> str:
    if exc_type.__module__ == "builtins":
        return exc_type.__qualname__
    return f"{exc_type.__module__}.{exc_type.__qualname__}"


def _frames_from_traceback(tb: TracebackType | None) -> tuple[StackFrame, ...]:
    frames = []
    for frame, lineno in traceback.walk_tb(tb):
        code = frame.f_code
        module = frame.f_globals.get("__name__", "<unknown>")
        qualname = getattr(code, "co_qualname", code.co_name)
        owner, _, method = qualname.rpartition(".")
        # Drop "<locals>" segments of nested functions
        owner = ".".join(part for part in owner.split(".") if part != "<locals>")
        type_name = f"{module}.{owner}" if owner else module
        frames.append(
            StackFrame(
                type_name=type_name,
                method=method,
                filename=code.co_filename.rsplit("/", 1)[-1],
                lineno=lineno,
            )
        )
    return tuple(frames)


@dataclass(frozen=True)
class Failure:
    """A test failure as reported by the test framework."""

    message: str | None
    error: ErrorDetail | None = None
    header: str = ""


@dataclass(frozen=True)
class TestResult:
    """The finalized record for one test in one run.

    Created exactly once per fingerprint per run.
    """

    __test__ = False

    fingerprint: str
    name: str
    category: str
    duration_ms: int
    passed: bool
    active: bool
    key: str | None = None
    message: str | None = None
    tags: frozenset[str] = field(default_factory=frozenset)
    tickets: frozenset[str] = field(default_factory=frozenset)
    contributors: frozenset[str] = field(default_factory=frozenset)
    metadata: Mapping[str, str] = field(default_factory=dict)  # converted to proxy in __post_init__

    def __post_init__(self) -> None:
        """Validate invariants and freeze metadata."""
        if self.duration_ms < 0:
            raise ValueError(f"duration_ms must be non-negative, got {self.duration_ms}")
        if isinstance(self.metadata, dict):
            object.__setattr__(self, "metadata", MappingProxyType(self.metadata))


@dataclass(frozen=True)
class Probe:
    """The client that produced a test run."""

    name: str
    version: str


@dataclass(frozen=True)
class TestRun:
    """Aggregate of all results of one run, ready to be saved or published."""

    __test__ = False

    project_api_id: str | None
    project_version: str | None
    duration_ms: int
    results: tuple[TestResult, ...]
    pipeline: str | None = None
    stage: str | None = None
    context: Mapping[str, Any] = field(default_factory=dict)  # converted to proxy in __post_init__
    probe: Probe | None = None

    def __post_init__(self) -> None:
        """Convert context dict to read-only proxy."""
        if isinstance(self.context, dict):
            object.__setattr__(self, "context", MappingProxyType(self.context))


@dataclass(frozen=True)
class DispatchResult:
    """Summary of a sink dispatch."""

    attempted: tuple[str, ...] = ()
    succeeded: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
