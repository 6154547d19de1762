"""
Policy Store - relational storage backend for authorization policy rules.

Maps the policy engine's rule tuples (permission and grouping rules) to rows
of a single SQL table and back, supporting full and filtered loads, atomic
saves, and incremental add/remove/update.
"""

__version__ = "0.1.0"
__author__ = "Policy Store Contributors"

from policystore.config import PolicyStoreConfig, load_config
from policystore.errors import (
    ConfigurationError,
    FilterError,
    PolicyStoreError,
    RuleError,
    StoreClosedError,
    UpdateMismatchError,
)
from policystore.policy import PolicyModel, load_policy_line
from policystore.rules import FieldFilter, Filter, RuleRecord, rule_identity
from policystore.storage import PolicyStore, create_store

__all__ = [
    "PolicyStore",
    "create_store",
    "PolicyModel",
    "load_policy_line",
    "Filter",
    "FieldFilter",
    "RuleRecord",
    "rule_identity",
    "PolicyStoreConfig",
    "load_config",
    "ConfigurationError",
    "FilterError",
    "PolicyStoreError",
    "RuleError",
    "StoreClosedError",
    "UpdateMismatchError",
    "__version__",
]
