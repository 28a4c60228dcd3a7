"""Metadata precedence rules for test results.

This module implements the rules that derive a test's effective name,
category, tags, tickets, contributors and active flag from its method
override, its class override, the global configuration and the
listener's fallback category.
"""

import re
from dataclasses import dataclass, field

from .models import GlobalConfiguration, MetadataOverrides, TestIdentity

DEFAULT_CATEGORY = "unit"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def humanize(text: str) -> str:
    """Turn a camelCase or snake_case identifier into capitalized words.

    A parametrization suffix is kept verbatim.

    Examples:
        >>> humanize("LoginServiceTest")
        'Login Service Test'
        >>> humanize("test_valid_user[admin-1]")
        'Test Valid User [admin-1]'
    """
    bracket = text.find("[")
    suffix = ""
    if bracket > 0 and text.endswith("]"):
        text, suffix = text[:bracket], text[bracket:]

    words = _CAMEL_BOUNDARY.sub(" ", text.replace("_", " ")).split()
    human = " ".join(word[0].upper() + word[1:] for word in words)

    if suffix:
        return f"{human} {suffix}" if human else suffix
    return human


@dataclass(frozen=True)
class ResolvedMetadata:
    """Effective metadata of one test after applying precedence."""

    name: str
    category: str
    key: str | None = None
    tags: frozenset[str] = field(default_factory=frozenset)
    tickets: frozenset[str] = field(default_factory=frozenset)
    contributors: frozenset[str] = field(default_factory=frozenset)
    active: bool | None = None


class MetadataResolver:
    """Computes effective test metadata from layered overrides.

    Pure decision logic without side effects. Absent overrides are a valid
    input at every level and never raise.
    """

    def __init__(
        self,
        configuration: GlobalConfiguration,
        fallback_category: str | None = None,
    ):
        self.configuration = configuration
        self.fallback_category = fallback_category

    def resolve(
        self, identity: TestIdentity, overrides: MetadataOverrides
    ) -> ResolvedMetadata:
        """Resolve every metadata field for one test."""
        return ResolvedMetadata(
            key=self.key(overrides),
            name=self.name(identity, overrides),
            category=self.category(overrides),
            tags=self.tags(overrides),
            tickets=self.tickets(overrides),
            contributors=self.contributors(overrides),
            active=self.active(overrides),
        )

    @staticmethod
    def key(overrides: MetadataOverrides) -> str | None:
        """Explicit key from the method override, if non-empty."""
        if overrides.method is not None and overrides.method.key:
            return overrides.method.key
        return None

    @staticmethod
    def name(identity: TestIdentity, overrides: MetadataOverrides) -> str:
        """Method override name, else a human-readable "Type: Method" name."""
        if overrides.method is not None and overrides.method.name:
            return overrides.method.name
        return f"{humanize(identity.simple_type_name)}: {humanize(identity.method_name or '')}"

    def category(self, overrides: MetadataOverrides) -> str:
        """First non-empty of method, class, configuration, fallback, default."""
        candidates = (
            overrides.method.category if overrides.method is not None else None,
            overrides.cls.category if overrides.cls is not None else None,
            self.configuration.category,
            self.fallback_category,
        )
        for candidate in candidates:
            if candidate:
                return candidate
        return DEFAULT_CATEGORY

    def tags(self, overrides: MetadataOverrides) -> frozenset[str]:
        """Union of configuration, class and method tags."""
        tags = set(self.configuration.tags)
        if overrides.cls is not None:
            tags |= overrides.cls.tags
        if overrides.method is not None:
            tags |= overrides.method.tags
        return frozenset(tags)

    def tickets(self, overrides: MetadataOverrides) -> frozenset[str]:
        """Union of configuration, class and method tickets."""
        tickets = set(self.configuration.tickets)
        if overrides.cls is not None:
            tickets |= overrides.cls.tickets
        if overrides.method is not None:
            tickets |= overrides.method.tickets
        return frozenset(tickets)

    @staticmethod
    def contributors(overrides: MetadataOverrides) -> frozenset[str]:
        """Union of class and method contributors. There is no global default."""
        contributors: set[str] = set()
        if overrides.cls is not None:
            contributors |= overrides.cls.contributors
        if overrides.method is not None:
            contributors |= overrides.method.contributors
        return frozenset(contributors)

    @staticmethod
    def active(overrides: MetadataOverrides) -> bool | None:
        """Explicit active flag of the method override, else None."""
        if overrides.method is not None:
            return overrides.method.active
        return None
