"""Run-time selection of tests by metadata."""

import fnmatch
from dataclasses import dataclass

from .metadata import MetadataResolver
from .models import MetadataOverrides, TestIdentity

ANY = "*"
FILTER_TYPES = frozenset(
    {ANY, "key", "name", "category", "tag", "ticket", "method", "type"}
)


@dataclass(frozen=True)
class FilterDefinition:
    """A filter of a given type ("tag", "key", ...) with a wildcard pattern."""

    type: str
    text: str

    def __post_init__(self) -> None:
        """Validate filter definition invariants on creation."""
        if self.type not in FILTER_TYPES:
            raise ValueError(
                f"Unknown filter type '{self.type}', expected one of {sorted(FILTER_TYPES)}"
            )
        if not self.text:
            raise ValueError("filter text must be a non-empty string")


def parse_filter(text: str) -> FilterDefinition:
    """Parse "type:pattern" or a bare pattern (matching any type).

    Examples:
        >>> parse_filter("tag:smoke")
        FilterDefinition(type='tag', text='smoke')
        >>> parse_filter("login*")
        FilterDefinition(type='*', text='login*')
    """
    filter_type, separator, pattern = text.partition(":")
    if separator and filter_type.strip().lower() in FILTER_TYPES:
        return FilterDefinition(type=filter_type.strip().lower(), text=pattern.strip())
    return FilterDefinition(type=ANY, text=text.strip())


class TestFilter:
    """Decides whether a test should run given filter definitions.

    No definition means every test runs. Otherwise a leaf test runs if
    at least one definition matches its metadata.
    """

    __test__ = False

    def __init__(
        self,
        resolver: MetadataResolver,
        filters: list[FilterDefinition] | None = None,
    ):
        self.resolver = resolver
        self.filters: list[FilterDefinition] = list(filters or [])

    def add_filter(self, text: str) -> None:
        """Add a filter unless an equal one (ignoring case) is present."""
        definition = parse_filter(text)
        for existing in self.filters:
            if (
                existing.type == definition.type
                and existing.text.lower() == definition.text.lower()
            ):
                return
        self.filters.append(definition)

    def should_run(self, identity: TestIdentity, overrides: MetadataOverrides) -> bool:
        """True if the test is selected by at least one filter."""
        if not self.filters or not identity.is_leaf:
            return True

        values = self._filterable_values(identity, overrides)
        return any(
            self._matches(definition, values) for definition in self.filters
        )

    def _filterable_values(
        self, identity: TestIdentity, overrides: MetadataOverrides
    ) -> dict[str, list[str]]:
        metadata = self.resolver.resolve(identity, overrides)
        return {
            "key": [metadata.key] if metadata.key else [],
            "name": [metadata.name],
            "category": [metadata.category],
            "tag": sorted(metadata.tags),
            "ticket": sorted(metadata.tickets),
            "method": [identity.method_name or ""],
            "type": [identity.type_name, identity.simple_type_name],
        }

    @staticmethod
    def _matches(definition: FilterDefinition, values: dict[str, list[str]]) -> bool:
        pattern = definition.text.lower()
        if definition.type == ANY:
            candidates = [value for group in values.values() for value in group]
        else:
            candidates = values[definition.type]
        return any(fnmatch.fnmatchcase(value.lower(), pattern) for value in candidates)
