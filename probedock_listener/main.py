"""Composition root for the Probe Dock test listener.

This module is the ONLY location that imports both core domain logic
and concrete adapter implementations. All wiring of dependencies
happens here, creating a clear entry point for test framework plugins.

Module Structure:
- Configuration loading via config module
- Logging configuration
- Adapter instantiation
- Core service initialization
- Dependency injection
"""

import logging
import sys

from probedock_listener import __version__
from probedock_listener.adapters.metadata.reflection import ReflectionMetadataLookup
from probedock_listener.adapters.publish.http_connector import HttpConnector
from probedock_listener.adapters.storage.file_store import FileStore
from probedock_listener.config import Settings, load_settings
from probedock_listener.core.accumulator import Clock, RunAccumulator, utc_now
from probedock_listener.core.dispatcher import ResultSinkDispatcher
from probedock_listener.core.extractors import StandardMetadataExtractor
from probedock_listener.core.failure import FailureRenderer
from probedock_listener.core.filters import TestFilter
from probedock_listener.core.fingerprint import Fingerprinter
from probedock_listener.core.listener import ProbeListener
from probedock_listener.core.metadata import MetadataResolver
from probedock_listener.core.models import GlobalConfiguration, Probe
from probedock_listener.core.ports import MetadataLookupPort

PROBE_NAME = "probedock-listener"


def configure_logging(log_level: str, log_format: str) -> None:
    """Configure listener logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Log format (json, text).
    """
    level = getattr(logging, log_level, logging.INFO)

    if log_format == "json":
        format_str = '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'
    else:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(format_str))

    # Scoped to the package logger so the host framework's logging is untouched
    package_logger = logging.getLogger("probedock_listener")
    package_logger.setLevel(level)
    package_logger.handlers = [handler]
    package_logger.propagate = False


def build_filter(
    configuration: GlobalConfiguration, fallback_category: str | None = None
) -> TestFilter:
    """Create the test filter from the configured filter expressions."""
    logger = logging.getLogger(__name__)
    test_filter = TestFilter(MetadataResolver(configuration, fallback_category))
    for expression in configuration.filters:
        try:
            test_filter.add_filter(expression)
        except ValueError as e:
            logger.error(f"Ignoring invalid test filter '{expression}': {e}")
    return test_filter


def build_listener(
    settings: Settings | None = None,
    fallback_category: str | None = None,
    lookup: MetadataLookupPort | None = None,
    clock: Clock = utc_now,
) -> ProbeListener:
    """Load configuration, wire adapters and return the listener.

    Steps:
    1. Load configuration from environment (unless given)
    2. Configure logging
    3. Instantiate sink adapters enabled by configuration
    4. Initialize core services

    Args:
        settings: Pre-loaded settings. Loaded from environment when None.
        fallback_category: Category used when neither overrides nor
            configuration define one.
        lookup: Metadata lookup; defaults to @probe decorator reflection.
        clock: Time source for durations.

    Returns:
        A ProbeListener ready to receive the events of a run.
    """
    # Step 1: Load configuration
    if settings is None:
        settings = load_settings()
    configuration = settings.to_configuration()

    # Step 2: Configure logging
    configure_logging(settings.log_level, settings.log_format)
    logger = logging.getLogger(__name__)

    if configuration.disabled:
        logger.info("Probe Dock listener is disabled")

    # Step 3: Instantiate adapters
    store = None
    if configuration.save:
        try:
            store = FileStore(workspace=settings.workspace)
        except ValueError as e:
            logger.error(f"Saving is enabled but the workspace is unusable: {e}")
        else:
            logger.info(f"Test runs will be saved to {store.runs_dir}")

    publisher = None
    if configuration.publish:
        if not settings.server_url:
            logger.error("Publishing is enabled but PROBEDOCK_SERVER_URL is not set")
        else:
            publisher = HttpConnector(
                server_url=settings.server_url,
                api_token=settings.api_token,
                timeout_seconds=settings.request_timeout_seconds,
            )
            logger.info(f"Test runs will be published to {settings.server_url}")

    # Step 4: Initialize core services
    metadata_lookup = lookup or ReflectionMetadataLookup()
    fingerprinter = Fingerprinter()
    probe = Probe(name=PROBE_NAME, version=__version__)

    def new_accumulator() -> RunAccumulator:
        return RunAccumulator(
            configuration=configuration,
            lookup=metadata_lookup,
            resolver=MetadataResolver(configuration, fallback_category),
            renderer=FailureRenderer(full_stack_traces=configuration.full_stack_traces),
            fingerprinter=fingerprinter,
            extractors=[StandardMetadataExtractor()],
            clock=clock,
            probe=probe,
        )

    dispatcher = ResultSinkDispatcher(
        configuration=configuration,
        store=store,
        publisher=publisher,
    )

    return ProbeListener(
        configuration=configuration,
        accumulator_factory=new_accumulator,
        dispatcher=dispatcher,
    )


async def close_listener(listener: ProbeListener) -> None:
    """Release resources held by the listener's sink adapters."""
    for port in (listener.dispatcher.store, listener.dispatcher.publisher):
        # Close adapters that hold connections
        if hasattr(port, "close"):
            await port.close()
