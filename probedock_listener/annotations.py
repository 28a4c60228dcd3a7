"""Declarative Probe Dock metadata for test functions and classes.

Example:
    @probe(category="integration", tags=["db"])
    class TestRepository:

        @probe(key="repository-save", tickets=["JIRA-42"])
        def test_save(self):
            ...
"""

from collections.abc import Callable, Iterable
from typing import TypeVar

from probedock_listener.core.models import MetadataOverride

ATTRIBUTE = "__probedock__"

T = TypeVar("T")


def probe(
    key: str | None = None,
    name: str | None = None,
    category: str | None = None,
    tags: Iterable[str] = (),
    tickets: Iterable[str] = (),
    contributors: Iterable[str] = (),
    active: bool | None = None,
) -> Callable[[T], T]:
    """Attach a MetadataOverride to a test function or class.

    Args:
        key: Stable key. When set, it alone determines the test fingerprint.
        name: Display name replacing the generated one.
        category: Category of the test (e.g. "unit", "integration").
        tags: Tags added to the configured and class-level tags.
        tickets: Tickets added to the configured and class-level tickets.
        contributors: Contributors (e-mail addresses) of the test.
        active: Explicit active flag; None leaves the decision to the listener.
    """
    override = MetadataOverride(
        key=key,
        name=name,
        category=category,
        tags=frozenset(tags),
        tickets=frozenset(tickets),
        contributors=frozenset(contributors),
        active=active,
    )

    def decorate(target: T) -> T:
        setattr(target, ATTRIBUTE, override)
        return target

    return decorate


def get_override(target: object) -> MetadataOverride | None:
    """Return the override declared directly on a function or class."""
    # vars() skips overrides inherited from a decorated base class
    try:
        override = vars(target).get(ATTRIBUTE)
    except TypeError:
        return None
    return override if isinstance(override, MetadataOverride) else None
