"""
In-memory policy model.

Mirrors the layout the policy engine keeps its rules in: sections ("p" for
permission rules, "g" for grouping rules) holding one assertion per rule
type, each with an ordered list of rules. The store only appends to it on
load and reads from it on save.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Sequence

from policystore.rules.codec import parse_line

SECTIONS = ("p", "g")


@dataclass
class Assertion:
    """Rules of one rule type."""

    key: str
    policy: list[list[str]] = field(default_factory=list)


class PolicyModel:
    """
    Minimal policy model.

    Any object exposing ``model[section][ptype].policy`` can be used with
    the store in its place.
    """

    def __init__(self) -> None:
        self.model: dict[str, dict[str, Assertion]] = {
            section: {section: Assertion(key=section)} for section in SECTIONS
        }

    def _assertion(self, sec: str, ptype: str) -> Assertion:
        assertions = self.model.setdefault(sec, {})
        if ptype not in assertions:
            assertions[ptype] = Assertion(key=ptype)
        return assertions[ptype]

    def add_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        """
        Append a rule unless it is already present.

        Returns:
            True if the rule was added
        """
        assertion = self._assertion(sec, ptype)
        rule = list(rule)
        if rule in assertion.policy:
            return False
        assertion.policy.append(rule)
        return True

    def get_policy(self, sec: str, ptype: str) -> list[list[str]]:
        """Rules of one rule type, in load order."""
        assertion = self.model.get(sec, {}).get(ptype)
        return [list(rule) for rule in assertion.policy] if assertion else []

    def has_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        return list(rule) in self.get_policy(sec, ptype)

    def clear_policy(self) -> None:
        for assertions in self.model.values():
            for assertion in assertions.values():
                assertion.policy = []

    def iter_rules(self) -> Iterator[tuple[str, list[str]]]:
        """Yield (ptype, rule) for every rule, sections in order."""
        yield from iter_model_rules(self)


def iter_model_rules(model: Any) -> Iterator[tuple[str, list[str]]]:
    """
    Yield (ptype, rule) for every rule of a model's "p" and "g" sections.

    Args:
        model: Object exposing ``model[section][ptype].policy``
    """
    for sec in SECTIONS:
        for ptype, assertion in model.model.get(sec, {}).items():
            for rule in assertion.policy:
                yield ptype, rule


def load_policy_line(line: str, model: Any) -> None:
    """
    Parse a policy line and append it to the model.

    The section is the first letter of the rule type. Blank lines,
    comments and lines for unknown sections are ignored.
    """
    tokens = parse_line(line)
    if not tokens:
        return

    ptype = tokens[0]
    sec = ptype[:1]
    if sec not in model.model:
        return

    assertions = model.model[sec]
    if ptype not in assertions:
        assertions[ptype] = Assertion(key=ptype)
    assertions[ptype].policy.append(tokens[1:])
