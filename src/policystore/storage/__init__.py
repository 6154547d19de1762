"""
Policy storage.

Relational persistence of policy rules through SQLAlchemy.
"""

from policystore.storage.models import (
    DEFAULT_TABLE_NAME,
    Base,
    CasbinRule,
    rule_model,
)
from policystore.storage.store import PolicyStore, create_store

__all__ = [
    # Store
    "PolicyStore",
    "create_store",
    # Models
    "Base",
    "CasbinRule",
    "DEFAULT_TABLE_NAME",
    "rule_model",
]
