"""Wire representation of test runs.

Shared by the file store and the HTTP connector so a saved run can be
published later as-is.
"""

from typing import Any

from probedock_listener.core.models import TestResult, TestRun

PAYLOAD_MEDIA_TYPE = "application/vnd.probedock.payload.v1+json"


def run_to_payload(run: TestRun) -> dict[str, Any]:
    """Convert a test run to the Probe Dock v1 payload."""
    payload: dict[str, Any] = {
        "projectId": run.project_api_id,
        "version": run.project_version,
        "duration": run.duration_ms,
        "results": [result_to_payload(result) for result in run.results],
        "context": dict(run.context),
    }
    if run.pipeline:
        payload["pipeline"] = run.pipeline
    if run.stage:
        payload["stage"] = run.stage
    if run.probe is not None:
        payload["probe"] = {"name": run.probe.name, "version": run.probe.version}
    return payload


def result_to_payload(result: TestResult) -> dict[str, Any]:
    """Convert a single test result to its compact v1 form.

    Keys: k=key, f=fingerprint, n=name, c=category, d=duration, p=passed,
    v=active, m=message, g=tags, t=tickets, e=contributors, a=metadata.
    Sets are sorted so identical runs serialize identically.
    """
    payload: dict[str, Any] = {
        "f": result.fingerprint,
        "n": result.name,
        "c": result.category,
        "d": result.duration_ms,
        "p": result.passed,
        "v": result.active,
        "g": sorted(result.tags),
        "t": sorted(result.tickets),
        "e": sorted(result.contributors),
        "a": dict(result.metadata),
    }
    if result.key:
        payload["k"] = result.key
    if result.message is not None:
        payload["m"] = result.message
    return payload
