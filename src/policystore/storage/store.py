"""
Policy Store Operations.

Loads and saves policy rules for the policy engine and applies its
incremental changes. Every operation that touches more than one row runs
in a single transaction and is rolled back as a whole on failure.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Generator, Iterable, Sequence

from sqlalchemy import create_engine, func, insert, or_, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError, OperationalError, ProgrammingError
from sqlalchemy.orm import Query, Session, sessionmaker

from policystore.errors import (
    ConfigurationError,
    RuleError,
    StoreClosedError,
    UpdateMismatchError,
)
from policystore.policy import iter_model_rules, load_policy_line
from policystore.rules.codec import encode_line, record_to_rule
from policystore.rules.filter import FieldFilter, Filter, resolve_filter
from policystore.rules.record import FIELD_NAMES, RuleRecord
from policystore.storage.models import DEFAULT_TABLE_NAME, rule_model

if TYPE_CHECKING:
    from policystore.config import PolicyStoreConfig


logger = logging.getLogger(__name__)

LineHandler = Callable[[str, Any], None]


def _create_engine(source: str | URL | Engine, echo: bool) -> tuple[Engine, bool]:
    """
    Resolve the connection argument.

    Returns:
        The engine and whether the store owns (and must dispose) it
    """
    if isinstance(source, Engine):
        return source, False

    if isinstance(source, (str, URL)):
        try:
            url = make_url(source)
            engine = create_engine(url, echo=echo, pool_pre_ping=True)
        except ArgumentError as e:
            raise ConfigurationError(f"Invalid database URL: {e}") from e
        return engine, True

    raise ConfigurationError(
        "Must pass a database URL string, a sqlalchemy URL or an Engine, "
        f"received {type(source).__name__} instead"
    )


class PolicyStore:
    """
    Relational storage backend for policy rules.

    Rules of every type live in one table; a rule's identity is its primary
    key, which makes inserts idempotent. The ``sec`` argument of the
    mutation methods is accepted for the engine's calling convention; rules
    are addressed by ``ptype`` alone.
    """

    def __init__(
        self,
        source: str | URL | Engine,
        table_name: str = DEFAULT_TABLE_NAME,
        skip_table_create: bool = False,
        echo: bool = False,
        line_handler: LineHandler = load_policy_line,
    ) -> None:
        """
        Initialize the policy store.

        Args:
            source: Database URL or an existing Engine (not disposed on close)
            table_name: Name of the rules table
            skip_table_create: Do not create the table if it is missing
            echo: Log emitted SQL
            line_handler: Callable appending a policy line to a model

        Raises:
            ConfigurationError: If an argument has the wrong shape
        """
        if not isinstance(table_name, str) or not table_name:
            raise ConfigurationError(f"Invalid table name: {table_name!r}")
        if not callable(line_handler):
            raise ConfigurationError("line_handler must be callable")

        self.engine, self._owns_engine = _create_engine(source, echo)
        self.table_name = table_name
        self.rule_cls = rule_model(table_name)
        self.line_handler = line_handler

        # Create session factory
        self.Session = sessionmaker(bind=self.engine)

        self._filtered = False
        self._closed = False

        if not skip_table_create:
            self._init_schema()

    @classmethod
    def from_config(cls, config: PolicyStoreConfig) -> PolicyStore:
        """Create a store from loaded configuration."""
        return cls(
            config.database.url,
            table_name=config.database.table_name,
            skip_table_create=config.database.skip_table_create,
            echo=config.database.echo,
        )

    def _init_schema(self) -> None:
        """Create the rules table if it does not exist."""
        try:
            self.rule_cls.__table__.create(self.engine, checkfirst=True)
        except (OperationalError, ProgrammingError) as e:
            # Another process created it between the check and the create
            if "already exists" not in str(e).lower():
                raise
            logger.debug("Rules table created concurrently: %s", e)

        logger.debug("Rules table ready: %s", self.table_name)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Get a database session context manager.

        The session is one transaction: committed when the block exits,
        rolled back if it raises.

        Yields:
            SQLAlchemy Session object

        Raises:
            StoreClosedError: If the store has been closed
        """
        if self._closed:
            raise StoreClosedError(f"Policy store for {self.table_name} is closed")

        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # =========================================================================
    # Query helpers
    # =========================================================================

    def _query(self, session: Session) -> Query:
        return session.query(self.rule_cls)

    def _filter_conditions(self, field_filter: FieldFilter) -> list[Any]:
        """Equality conditions for the filter's constrained slots."""
        conditions = [self.rule_cls.ptype == field_filter.ptype]
        for slot, value in field_filter.constraints().items():
            conditions.append(getattr(self.rule_cls, FIELD_NAMES[slot]) == value)
        return conditions

    def _exact_conditions(self, record: RuleRecord) -> list[Any]:
        """Conditions matching a record on its type and all six slots."""
        conditions = [self.rule_cls.ptype == record.ptype]
        for name, value in zip(FIELD_NAMES, record.fields):
            column = getattr(self.rule_cls, name)
            if value:
                conditions.append(column == value)
            else:
                conditions.append(or_(column == "", column.is_(None)))
        return conditions

    def _insert_ignore(self, session: Session, records: Iterable[RuleRecord]) -> int:
        """
        Insert records, skipping identities that are already stored.

        Returns:
            Number of distinct records submitted
        """
        rows = list({record.identity: record.to_row_dict() for record in records}.values())
        if not rows:
            return 0

        table = self.rule_cls.__table__
        dialect = self.engine.dialect.name

        if dialect == "sqlite":
            stmt = sqlite_insert(table).on_conflict_do_nothing(index_elements=["id"])
        elif dialect == "postgresql":
            stmt = postgresql_insert(table).on_conflict_do_nothing(index_elements=["id"])
        elif dialect in ("mysql", "mariadb"):
            stmt = insert(table).prefix_with("IGNORE")
        else:
            ids = [row["id"] for row in rows]
            existing = set(session.scalars(select(table.c.id).where(table.c.id.in_(ids))))
            rows = [row for row in rows if row["id"] not in existing]
            if not rows:
                return 0
            stmt = insert(table)

        session.execute(stmt, rows)
        return len(rows)

    # =========================================================================
    # Loading
    # =========================================================================

    def _handle_records(self, records: list[RuleRecord], model: Any) -> None:
        for record in records:
            self.line_handler(encode_line(record), model)

    def load_policy(self, model: Any) -> None:
        """
        Load every stored rule into the model.

        Args:
            model: Policy model the line handler appends to
        """
        with self.session() as session:
            records = [RuleRecord.from_row(row) for row in self._query(session).all()]

        self._handle_records(records, model)
        self._filtered = False
        logger.debug("Loaded %d rules from %s", len(records), self.table_name)

    def load_filtered_policy(self, model: Any, filter: Filter | None) -> None:
        """
        Load only the rules matching a filter.

        Args:
            model: Policy model the line handler appends to
            filter: Filter, or None to load everything

        Raises:
            FilterError: If the filter has the wrong type or shape
        """
        field_filters = resolve_filter(filter)
        if field_filters is None:
            self.load_policy(model)
            return

        records: list[RuleRecord] = []
        with self.session() as session:
            for field_filter in field_filters:
                query = self._query(session).filter(*self._filter_conditions(field_filter))
                records.extend(RuleRecord.from_row(row) for row in query.all())

        self._handle_records(records, model)
        self._filtered = True
        logger.debug("Loaded %d filtered rules from %s", len(records), self.table_name)

    def is_filtered(self) -> bool:
        """Check if the last load was a filtered one."""
        return self._filtered

    # =========================================================================
    # Saving
    # =========================================================================

    def save_policy(self, model: Any) -> None:
        """
        Replace all stored rules with the model's rules.

        Either every stored rule is replaced or, on failure, none is.

        Args:
            model: Policy model exposing ``model[section][ptype].policy``
        """
        with self.session() as session:
            removed = self._query(session).delete(synchronize_session=False)
            records = (
                RuleRecord.from_rule(ptype, rule)
                for ptype, rule in iter_model_rules(model)
            )
            saved = self._insert_ignore(session, records)

        logger.debug("Saved policy: %d rules replaced by %d", removed, saved)

    def add_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> None:
        """Store a rule; storing it again has no effect."""
        self.add_policies(sec, ptype, [rule])

    def add_policies(self, sec: str, ptype: str, rules: Sequence[Sequence[str]]) -> None:
        """Store several rules in one transaction, skipping stored ones."""
        records = [RuleRecord.from_rule(ptype, rule) for rule in rules]
        with self.session() as session:
            self._insert_ignore(session, records)

    # =========================================================================
    # Removing
    # =========================================================================

    def remove_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> None:
        """Delete a rule by identity; missing rules are ignored."""
        self.remove_policies(sec, ptype, [rule])

    def remove_policies(self, sec: str, ptype: str, rules: Sequence[Sequence[str]]) -> None:
        """Delete several rules by identity in one transaction."""
        ids = [RuleRecord.from_rule(ptype, rule).identity for rule in rules]
        if not ids:
            return

        with self.session() as session:
            removed = (
                self._query(session)
                .filter(self.rule_cls.id.in_(ids))
                .delete(synchronize_session=False)
            )
        logger.debug("Removed %d %s rules", removed, ptype)

    def remove_filtered_policy(
        self,
        sec: str,
        ptype: str,
        field_index: int,
        *field_values: str,
    ) -> int:
        """
        Delete every rule of a type matching the field values.

        Args:
            sec: Policy section
            ptype: Rule type
            field_index: Field slot the first value applies to
            field_values: Values for consecutive slots, "" matches anything

        Returns:
            Number of rules deleted

        Raises:
            FilterError: If the values address slots past the last field
        """
        field_filter = FieldFilter.create(ptype, field_index, field_values)
        with self.session() as session:
            removed = (
                self._query(session)
                .filter(*self._filter_conditions(field_filter))
                .delete(synchronize_session=False)
            )
        logger.debug("Removed %d %s rules by filter", removed, ptype)
        return removed

    # =========================================================================
    # Updating
    # =========================================================================

    def update_policy(
        self,
        sec: str,
        ptype: str,
        old_rule: Sequence[str],
        new_rule: Sequence[str],
    ) -> None:
        """Replace one stored rule with another."""
        self.update_policies(sec, ptype, [old_rule], [new_rule])

    def update_policies(
        self,
        sec: str,
        ptype: str,
        old_rules: Sequence[Sequence[str]],
        new_rules: Sequence[Sequence[str]],
    ) -> None:
        """
        Replace stored rules pairwise in one transaction.

        Each old rule must match exactly one stored row on all its fields.
        Matched rows are deleted and the new rules inserted; a new rule that
        is already stored is kept once.

        Raises:
            RuleError: If the two lists differ in length
            UpdateMismatchError: If an old rule does not match exactly one row
        """
        if len(old_rules) != len(new_rules):
            raise RuleError(
                f"Got {len(old_rules)} old rules for {len(new_rules)} new rules"
            )

        pairs = [
            (RuleRecord.from_rule(ptype, old), RuleRecord.from_rule(ptype, new))
            for old, new in zip(old_rules, new_rules)
        ]

        # Every old row is deleted before any new row is inserted
        with self.session() as session:
            for old, _ in pairs:
                affected = (
                    self._query(session)
                    .filter(*self._exact_conditions(old))
                    .delete(synchronize_session=False)
                )
                if affected != 1:
                    raise UpdateMismatchError(ptype, old.rule(), affected)
            self._insert_ignore(session, [new for _, new in pairs])

        logger.debug("Updated %d %s rules", len(pairs), ptype)

    def update_filtered_policies(
        self,
        sec: str,
        ptype: str,
        new_rules: Sequence[Sequence[str]],
        field_index: int,
        *field_values: str,
    ) -> list[list[str]]:
        """
        Replace the rules matching a filter with new rules.

        Args:
            sec: Policy section
            ptype: Rule type
            new_rules: Rules to store in place of the matching ones
            field_index: Field slot the first value applies to
            field_values: Values for consecutive slots, "" matches anything

        Returns:
            The rules that were deleted
        """
        field_filter = FieldFilter.create(ptype, field_index, field_values)
        records = [RuleRecord.from_rule(ptype, rule) for rule in new_rules]

        with self.session() as session:
            rows = self._query(session).filter(*self._filter_conditions(field_filter)).all()
            removed = [RuleRecord.from_row(row) for row in rows]

            ids = [row.id for row in rows]
            if ids:
                (
                    self._query(session)
                    .filter(self.rule_cls.id.in_(ids))
                    .delete(synchronize_session=False)
                )
            self._insert_ignore(session, records)

        logger.debug(
            "Replaced %d %s rules with %d by filter", len(removed), ptype, len(records)
        )
        return [record_to_rule(record) for record in removed]

    # =========================================================================
    # Statistics & lifecycle
    # =========================================================================

    def count_rules(self, ptype: str | None = None) -> int:
        """
        Count stored rules.

        Args:
            ptype: Optional filter by rule type

        Returns:
            Number of rules
        """
        with self.session() as session:
            query = session.query(func.count(self.rule_cls.id))
            if ptype is not None:
                query = query.filter(self.rule_cls.ptype == ptype)
            return query.scalar()

    def close(self) -> None:
        """
        Close database connections. Safe to call more than once.

        Every later operation raises StoreClosedError.
        """
        if self._owns_engine and not self._closed:
            self.engine.dispose()
        self._closed = True

    def __enter__(self) -> PolicyStore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def create_store(url: str | URL, **kwargs: Any) -> PolicyStore:
    """
    Create a policy store for a database URL.

    Args:
        url: Database URL
        **kwargs: Further PolicyStore arguments

    Returns:
        Initialized PolicyStore
    """
    return PolicyStore(url, **kwargs)
