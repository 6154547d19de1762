"""
Rule model - records, identity, codec and filters.

Storage-independent representation of policy rules.
"""

from policystore.rules.codec import (
    encode_line,
    parse_line,
    record_from_tuple,
    record_to_rule,
    record_to_tuple,
)
from policystore.rules.filter import FieldFilter, Filter, resolve_filter
from policystore.rules.identity import rule_identity
from policystore.rules.record import FIELD_NAMES, MAX_FIELDS, RuleRecord

__all__ = [
    # Record
    "FIELD_NAMES",
    "MAX_FIELDS",
    "RuleRecord",
    # Identity
    "rule_identity",
    # Codec
    "encode_line",
    "parse_line",
    "record_from_tuple",
    "record_to_rule",
    "record_to_tuple",
    # Filters
    "FieldFilter",
    "Filter",
    "resolve_filter",
]
