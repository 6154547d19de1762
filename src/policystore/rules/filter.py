"""
Rule filters.

A filter constrains some field slots of one rule type to exact values and
leaves the others open. Values are given as a contiguous list starting at
a field slot; an empty value is a wildcard for its slot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from policystore.errors import FilterError
from policystore.rules.record import MAX_FIELDS


@dataclass(frozen=True)
class FieldFilter:
    """
    Sparse field constraints for one rule type.

    Value at position i constrains field slot start + i.
    """

    ptype: str
    start: int = 0
    values: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.start, int) or isinstance(self.start, bool):
            raise FilterError(f"Filter start slot must be an int, got {self.start!r}")
        if not 0 <= self.start < MAX_FIELDS:
            raise FilterError(
                f"Filter start slot {self.start} outside 0..{MAX_FIELDS - 1}"
            )
        if self.start + len(self.values) > MAX_FIELDS:
            raise FilterError(
                f"Filter addresses slots {self.start}..{self.start + len(self.values) - 1}, "
                f"rules have at most {MAX_FIELDS} fields"
            )
        for value in self.values:
            if not isinstance(value, str):
                raise FilterError(
                    f"Filter values must be strings, got {type(value).__name__}"
                )

    @classmethod
    def create(cls, ptype: str, start: int, values: Sequence[str]) -> FieldFilter:
        """Build a filter from any sequence of values."""
        return cls(ptype=ptype, start=start, values=tuple(values))

    def constraints(self) -> dict[int, str]:
        """Map of field slot to required value, wildcards omitted."""
        return {
            self.start + offset: value
            for offset, value in enumerate(self.values)
            if value != ""
        }

    def is_wildcard(self) -> bool:
        """Check if this filter matches every rule of its type."""
        return not self.constraints()


@dataclass
class Filter:
    """
    Filter for partial policy loads.

    None for a rule type leaves that type out of the load entirely;
    an empty list loads every rule of that type.
    """

    p: list[str] | None = None
    g: list[str] | None = None

    def field_filters(self) -> list[FieldFilter]:
        """
        Field filters for the rule types this filter selects.

        Raises:
            FilterError: If a value list is not a list of strings or
                addresses more than six slots
        """
        filters = []
        for ptype, values in (("p", self.p), ("g", self.g)):
            if values is None:
                continue
            if isinstance(values, str) or not isinstance(values, (list, tuple)):
                raise FilterError(
                    f"Filter values for '{ptype}' must be a list, "
                    f"got {type(values).__name__}"
                )
            filters.append(FieldFilter.create(ptype, 0, values))
        return filters


def resolve_filter(value: Any) -> list[FieldFilter] | None:
    """
    Validate a filter argument.

    Args:
        value: None or a Filter

    Returns:
        None for an unfiltered load, otherwise the field filters to apply

    Raises:
        FilterError: If the argument is neither None nor a Filter
    """
    if value is None:
        return None
    if not isinstance(value, Filter):
        raise FilterError(f"Invalid filter type: {type(value).__name__}")
    return value.field_filters()
