"""
Policy storage models.

SQLAlchemy ORM models for stored policy rules. All rule types share one
table, partitioned by the ptype column.
"""

from __future__ import annotations

import re
from typing import Any

from sqlalchemy import Column, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, declared_attr

from policystore.rules.identity import IDENTITY_LENGTH

DEFAULT_TABLE_NAME = "casbin_rule"

# MySQL indexes TEXT columns by prefix only
PTYPE_INDEX_LENGTH = 32


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class RuleColumns:
    """
    Columns of a stored rule.

    id is the rule identity; v0..v5 hold the field slots, empty when unused.
    Values are unbounded text.
    """

    id = Column(String(IDENTITY_LENGTH), primary_key=True)
    ptype = Column(Text, nullable=False, default="")
    v0 = Column(Text, nullable=True, default="")
    v1 = Column(Text, nullable=True, default="")
    v2 = Column(Text, nullable=True, default="")
    v3 = Column(Text, nullable=True, default="")
    v4 = Column(Text, nullable=True, default="")
    v5 = Column(Text, nullable=True, default="")

    @declared_attr.directive
    def __table_args__(cls) -> tuple[Any, ...]:
        return (
            Index(
                f"ix_{cls.__tablename__}_ptype",
                "ptype",
                mysql_length=PTYPE_INDEX_LENGTH,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "ptype": self.ptype,
            "v0": self.v0,
            "v1": self.v1,
            "v2": self.v2,
            "v3": self.v3,
            "v4": self.v4,
            "v5": self.v5,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.ptype} {self.id[:12] if self.id else None}>"


class CasbinRule(RuleColumns, Base):
    """Stored policy rule in the default table."""

    __tablename__ = DEFAULT_TABLE_NAME


_models: dict[str, type[RuleColumns]] = {DEFAULT_TABLE_NAME: CasbinRule}


def rule_model(table_name: str = DEFAULT_TABLE_NAME) -> type[RuleColumns]:
    """
    Get the mapped rule class for a table.

    Classes are created once per table name and reused.

    Args:
        table_name: Name of the rules table

    Returns:
        Mapped class with the rule columns
    """
    model = _models.get(table_name)
    if model is None:
        class_name = "CasbinRule_" + re.sub(r"\W", "_", table_name)
        model = type(
            class_name,
            (RuleColumns, Base),
            {"__tablename__": table_name, "__doc__": f"Stored policy rule in {table_name}."},
        )
        _models[table_name] = model
    return model
