"""Rendering of test failures into result messages."""

from .models import ErrorDetail, Failure


class FailureRenderer:
    """Renders a Failure into deterministic multi-line text.

    The text becomes the TestResult message and is mirrored to the log.
    It has no effect on reconciliation state.
    """

    def __init__(self, full_stack_traces: bool = True):
        """Initialize the renderer.

        Args:
            full_stack_traces: If False, stop emitting frames after the first
                frame declared by the failing test's own type, and omit the
                cause chain.
        """
        self.full_stack_traces = full_stack_traces

    def render(self, failure: Failure, test_type: str | None = None) -> str:
        """Render the failure message, error and stack frames.

        Args:
            failure: The failure to render.
            test_type: Declaring type of the failing test, used to truncate
                the trace when full stack traces are off.

        Returns:
            The rendered text. Empty if the failure has neither message
            nor error.
        """
        lines: list[str] = []

        if failure.message:
            lines.append(f"Failure message: {failure.message}")

        error = failure.error
        if error is None:
            return "\n".join(lines)

        if lines:
            lines.append("")
        lines.append(f"{error.type_name}: {error.message}")

        for frame in error.frames:
            lines.append(f"\tat {frame}")
            if not self.full_stack_traces and frame.type_name == test_type:
                lines.append("\t...")
                break

        if self.full_stack_traces and error.cause is not None:
            lines.extend(self._render_cause(error.cause))

        return "\n".join(lines) + "\n"

    def render_log_entry(self, failure: Failure, rendered: str) -> str:
        """Format a rendered failure for the logging sink."""
        return f"\n{failure.header}\n{rendered}"

    @staticmethod
    def _render_cause(cause: ErrorDetail) -> list[str]:
        lines = [f"Cause: {cause.message}"]
        lines.extend(f"\tat {frame}" for frame in cause.frames)
        return lines
