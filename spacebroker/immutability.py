"""
Frozen data protection

Two layers reject writes that would alter evidentiary contract terms:

1. Native triggers installed alongside the ``reservations`` and ``contracts``
   tables (SQLite and PostgreSQL). They fire for any writer, including raw SQL.
2. A ``before_flush`` hook on every ORM Session that refuses the same writes
   before any SQL is emitted.

A frozen column may be written once (NULL -> value); after that it never
changes. Snapshotted reservations may only be deleted once cancelled or
refunded and while no live contract references them; contracts only once
cancelled.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import DDL, event, inspect, select
from sqlalchemy.orm import Session

from .errors import ImmutabilityViolation

logger = logging.getLogger(__name__)

FROZEN_MARKER = "FROZEN_DATA_IMMUTABLE"


@dataclass(frozen=True)
class LiveDependent:
    """Rows in ``table`` whose ``column`` points at the guarded row and block its delete"""

    table: str
    column: str
    released_statuses: tuple


@dataclass(frozen=True)
class FrozenGuard:
    fields: tuple
    deletable_statuses: tuple
    # Deletes are only guarded once this column is set; None guards every row
    snapshot_column: str = None
    dependents: tuple = ()


def _changed_frozen_fields(session: Session, obj, guard: FrozenGuard) -> list[str]:
    state = inspect(obj)
    touched = [f for f in guard.fields if state.attrs[f].history.has_changes()]
    if not touched or state.key is None:
        return []

    # Expired attributes carry no previous value in their history, so compare
    # against what is actually stored.
    table = type(obj).__table__
    with session.no_autoflush:
        stored = session.execute(
            select(*[table.c[f] for f in touched]).where(table.c.id == obj.id)
        ).first()
    if stored is None:
        return []

    return [
        field
        for field, previous in zip(touched, stored)
        if previous is not None and getattr(obj, field) != previous
    ]


def _live_dependent(session: Session, obj, guard: FrozenGuard):
    metadata = type(obj).metadata
    for dependent in guard.dependents:
        child = metadata.tables[dependent.table]
        with session.no_autoflush:
            found = session.execute(
                select(child.c.id)
                .where(child.c[dependent.column] == obj.id)
                .where(child.c.status.notin_(dependent.released_statuses))
                .limit(1)
            ).first()
        if found is not None:
            return dependent.table
    return None


def _guard_frozen_rows(session: Session, flush_context, instances):
    for obj in session.dirty:
        guard = getattr(type(obj), "__frozen_guard__", None)
        if guard is None:
            continue
        changed = _changed_frozen_fields(session, obj, guard)
        if changed:
            raise ImmutabilityViolation(
                f"attempt to modify frozen fields {changed} on {type(obj).__tablename__} id={obj.id}"
            )

    for obj in session.deleted:
        guard = getattr(type(obj), "__frozen_guard__", None)
        if guard is None:
            continue
        if guard.snapshot_column and getattr(obj, guard.snapshot_column) is None:
            continue
        if obj.status not in guard.deletable_statuses:
            raise ImmutabilityViolation(
                f"attempt to delete {type(obj).__tablename__} id={obj.id} in status '{obj.status}'"
            )
        blocking = _live_dependent(session, obj, guard)
        if blocking:
            raise ImmutabilityViolation(
                f"attempt to delete {type(obj).__tablename__} id={obj.id} referenced by a live {blocking} row"
            )


event.listen(Session, "before_flush", _guard_frozen_rows)


# ============================================================================
# NATIVE TRIGGERS
# ============================================================================


def _quoted(statuses: tuple) -> str:
    return ", ".join(f"'{s}'" for s in statuses)


def _delete_condition(guard: FrozenGuard) -> str:
    blocked = [f"OLD.status NOT IN ({_quoted(guard.deletable_statuses)})"]
    for dependent in guard.dependents:
        blocked.append(
            f"EXISTS (SELECT 1 FROM {dependent.table} WHERE {dependent.table}.{dependent.column} = OLD.id "
            f"AND {dependent.table}.status NOT IN ({_quoted(dependent.released_statuses)}))"
        )
    condition = " OR ".join(blocked)
    if guard.snapshot_column:
        condition = f"OLD.{guard.snapshot_column} IS NOT NULL AND ({condition})"
    return condition


def _sqlite_triggers(table_name: str, guard: FrozenGuard) -> list[DDL]:
    changed = " OR ".join(
        f"(OLD.{f} IS NOT NULL AND OLD.{f} IS NOT NEW.{f})" for f in guard.fields
    )
    delete_condition = _delete_condition(guard)

    return [
        DDL(
            f"CREATE TRIGGER IF NOT EXISTS {table_name}_frozen_update_guard "
            f"BEFORE UPDATE ON {table_name} FOR EACH ROW WHEN {changed} "
            f"BEGIN SELECT RAISE(ABORT, '{FROZEN_MARKER}: frozen fields on {table_name} are immutable'); END"
        ),
        DDL(
            f"CREATE TRIGGER IF NOT EXISTS {table_name}_frozen_delete_guard "
            f"BEFORE DELETE ON {table_name} FOR EACH ROW WHEN {delete_condition} "
            f"BEGIN SELECT RAISE(ABORT, '{FROZEN_MARKER}: {table_name} row cannot be deleted in this status'); END"
        ),
    ]


def _postgresql_triggers(table_name: str, guard: FrozenGuard) -> list[DDL]:
    changed = " OR ".join(
        f"(OLD.{f} IS NOT NULL AND OLD.{f} IS DISTINCT FROM NEW.{f})" for f in guard.fields
    )
    delete_condition = _delete_condition(guard)

    function = f"{table_name}_frozen_guard"
    return [
        DDL(
            f"CREATE OR REPLACE FUNCTION {function}() RETURNS trigger AS $$\n"
            "BEGIN\n"
            "  IF TG_OP = 'UPDATE' THEN\n"
            f"    IF {changed} THEN\n"
            f"      RAISE EXCEPTION '{FROZEN_MARKER}: frozen fields on {table_name} are immutable';\n"
            "    END IF;\n"
            "    RETURN NEW;\n"
            "  END IF;\n"
            f"  IF {delete_condition} THEN\n"
            f"    RAISE EXCEPTION '{FROZEN_MARKER}: {table_name} row cannot be deleted in this status';\n"
            "  END IF;\n"
            "  RETURN OLD;\n"
            "END;\n"
            "$$ LANGUAGE plpgsql"
        ),
        DDL(f"DROP TRIGGER IF EXISTS {function}_trigger ON {table_name}"),
        DDL(
            f"CREATE TRIGGER {function}_trigger BEFORE UPDATE OR DELETE ON {table_name} "
            f"FOR EACH ROW EXECUTE FUNCTION {function}()"
        ),
    ]


def install_frozen_triggers(model) -> None:
    """
    Attach the guard triggers to schema creation.

    They are issued once the whole metadata has been created, since the
    delete guard may look into tables created after ``model``'s own.
    """
    table = model.__table__
    guard = model.__frozen_guard__

    for ddl in _sqlite_triggers(table.name, guard):
        event.listen(table.metadata, "after_create", ddl.execute_if(dialect="sqlite"))
    for ddl in _postgresql_triggers(table.name, guard):
        event.listen(table.metadata, "after_create", ddl.execute_if(dialect="postgresql"))

    logger.debug(f"🔒 Frozen data triggers registered for {table.name}")
