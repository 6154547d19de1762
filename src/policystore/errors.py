"""
Error types raised by the policy store.

Storage failures are not wrapped: SQLAlchemy exceptions reach the caller
unchanged.
"""

from __future__ import annotations


class PolicyStoreError(Exception):
    """Base class for policy store errors."""

    pass


class ConfigurationError(PolicyStoreError):
    """Invalid connection descriptor or constructor argument."""

    pass


class RuleError(PolicyStoreError):
    """Rule tuple of the wrong shape (too many fields, non-string values)."""

    pass


class FilterError(PolicyStoreError):
    """Filter of the wrong shape or addressing slots past the last field."""

    pass


class UpdateMismatchError(PolicyStoreError):
    """An update did not change exactly one stored rule."""

    def __init__(self, ptype: str, rule: list[str], affected: int) -> None:
        self.ptype = ptype
        self.rule = rule
        self.affected = affected
        super().__init__(
            f"Update of {ptype} rule {rule!r} affected {affected} rows, expected 1"
        )


class StoreClosedError(PolicyStoreError):
    """Operation on a store that has been closed."""

    pass
