"""
Rule record model.

The relational form of one policy rule: a rule type plus six positional
field slots.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from policystore.errors import RuleError
from policystore.rules.identity import rule_identity

MAX_FIELDS = 6

FIELD_NAMES = tuple(f"v{i}" for i in range(MAX_FIELDS))


@dataclass(frozen=True)
class RuleRecord:
    """
    One stored policy rule.

    Slots past the rule's effective length hold empty strings. An empty
    string inside the rule (before its last non-empty slot) is a real value.
    """

    ptype: str
    fields: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.fields) != MAX_FIELDS:
            raise RuleError(
                f"Rule record needs {MAX_FIELDS} field slots, got {len(self.fields)}"
            )

    @classmethod
    def from_rule(cls, ptype: str, rule: Sequence[str]) -> RuleRecord:
        """
        Build a record from a rule tuple.

        Args:
            ptype: Rule type
            rule: Up to six string values

        Returns:
            RuleRecord with unused slots left empty

        Raises:
            RuleError: If the rule has more than six values or non-string values
        """
        if not isinstance(ptype, str):
            raise RuleError(f"Rule type must be a string, got {type(ptype).__name__}")
        if len(rule) > MAX_FIELDS:
            raise RuleError(
                f"Rule has {len(rule)} fields, at most {MAX_FIELDS} are supported"
            )
        for value in rule:
            if not isinstance(value, str):
                raise RuleError(
                    f"Rule values must be strings, got {type(value).__name__}"
                )

        padded = tuple(rule) + ("",) * (MAX_FIELDS - len(rule))
        return cls(ptype=ptype, fields=padded)

    @classmethod
    def from_row(cls, row: Any) -> RuleRecord:
        """Build a record from a stored row, reading NULL columns as empty."""
        fields = tuple(getattr(row, name) or "" for name in FIELD_NAMES)
        return cls(ptype=row.ptype or "", fields=fields)

    @property
    def identity(self) -> str:
        """Primary key of this rule."""
        return rule_identity(self.ptype, self.fields)

    @property
    def length(self) -> int:
        """Number of slots up to and including the last non-empty one."""
        for index in range(MAX_FIELDS - 1, -1, -1):
            if self.fields[index]:
                return index + 1
        return 0

    def rule(self) -> list[str]:
        """Field values with the empty tail trimmed."""
        return list(self.fields[: self.length])

    def to_row_dict(self) -> dict[str, str]:
        """Column values for inserting this record."""
        values = {"id": self.identity, "ptype": self.ptype}
        values.update(zip(FIELD_NAMES, self.fields))
        return values

    def __str__(self) -> str:
        return ", ".join([self.ptype, *self.rule()])
