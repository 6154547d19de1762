"""
Canonical rule codec.

Converts between rule records, the line text consumed by the policy
engine's line parser, and plain rule tuples.
"""

from __future__ import annotations

import csv
from typing import Sequence

from policystore.rules.record import RuleRecord

LINE_SEPARATOR = ", "

_QUOTE_CHARS = (",", '"', "\n", "\r")


def _quote(token: str) -> str:
    """Quote a token the line parser would otherwise split or strip."""
    if token and (token != token.strip() or any(c in token for c in _QUOTE_CHARS)):
        return '"' + token.replace('"', '""') + '"'
    return token


def encode_line(record: RuleRecord) -> str:
    """
    Render a record as a policy line.

    The rule type comes first, followed by each field up to the last
    non-empty one. Empty fields before that point are kept.

    Args:
        record: Record to encode

    Returns:
        Line text such as "p, alice, , read"
    """
    tokens = [record.ptype, *record.rule()]
    return LINE_SEPARATOR.join(_quote(token) for token in tokens)


def record_to_tuple(record: RuleRecord) -> list[str]:
    """Rule type (if set) followed by the trimmed field values."""
    values = [record.ptype] if record.ptype else []
    values.extend(record.rule())
    return values


def record_to_rule(record: RuleRecord) -> list[str]:
    """Trimmed field values, the form the policy model stores."""
    return record.rule()


def record_from_tuple(ptype: str, rule: Sequence[str]) -> RuleRecord:
    """Build a record from a rule tuple."""
    return RuleRecord.from_rule(ptype, rule)


def parse_line(line: str) -> list[str]:
    """
    Split a policy line into tokens.

    Args:
        line: Policy line text

    Returns:
        Tokens with the rule type first, or an empty list for blank
        lines and comments
    """
    if not line.strip() or line.lstrip().startswith("#"):
        return []
    return next(csv.reader([line], skipinitialspace=True))
