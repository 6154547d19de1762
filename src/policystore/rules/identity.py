"""
Rule identity.

Generates the content fingerprint used as a stored rule's primary key.
Equal rules always produce the same identity, so inserting a rule that is
already stored can be ignored instead of checked for beforehand.
"""

from __future__ import annotations

import hashlib
from typing import Sequence

# ASCII unit separator, never part of a policy token
IDENTITY_SEPARATOR = "\x1f"

IDENTITY_LENGTH = 64


def rule_identity(ptype: str, fields: Sequence[str]) -> str:
    """
    Compute the identity of a rule.

    Args:
        ptype: Rule type ("p", "g", ...)
        fields: The rule's six field slots, padded with empty strings

    Returns:
        64-character hex SHA-256 digest
    """
    data = IDENTITY_SEPARATOR.join([ptype, *fields]).encode("utf-8")
    return hashlib.sha256(data).hexdigest()
