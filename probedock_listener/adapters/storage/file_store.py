"""JSON file persistence adapter.

Implements PersistencePort by writing each test run as a JSON payload
into the workspace directory, one file per run. Saved payloads use the
same format as published ones and can be uploaded later.
"""

import asyncio
import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path

from probedock_listener.adapters.serialization import run_to_payload
from probedock_listener.core.errors import StorageError
from probedock_listener.core.models import TestRun
from probedock_listener.core.ports import PersistencePort

logger = logging.getLogger(__name__)


class FileStore(PersistencePort):
    """Writes test runs to <workspace>/runs/<timestamp>-<uuid>.json."""

    def __init__(self, workspace: str):
        """Initialize the file store.

        Args:
            workspace: Base directory of the Probe Dock workspace. The runs
                directory is created on first save.

        Raises:
            ValueError: If workspace is a filesystem root.
        """
        self.workspace = Path(workspace).expanduser().resolve()

        if self.workspace.parent == self.workspace:
            raise ValueError(f"workspace cannot be a filesystem root: {workspace}")

        self.runs_dir = self.workspace / "runs"
        self.last_saved: Path | None = None

    def _get_run_file_path(self, now: datetime) -> Path:
        """Compute a unique file path for a run saved at the given time."""
        timestamp = now.strftime("%Y%m%dT%H%M%S")
        return self.runs_dir / f"{timestamp}-{uuid.uuid4().hex}.json"

    async def save(self, run: TestRun) -> None:
        """Write the run payload to a new JSON file.

        Raises:
            StorageError: If the directory or file cannot be written.
        """
        content = json.dumps(run_to_payload(run), indent=2, sort_keys=True)
        run_file = self._get_run_file_path(datetime.now(UTC))

        try:
            await asyncio.to_thread(self.runs_dir.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(run_file.write_text, content, encoding="utf-8")
        except OSError as e:
            logger.error(
                f"Failed to save test run: {e}",
                extra={"path": str(run_file)},
                exc_info=True,
            )
            raise StorageError(f"Failed to save test run to {run_file}: {e}") from e

        logger.info(
            f"Saved test run to {run_file}",
            extra={"results": len(run.results)},
        )
        self.last_saved = run_file
