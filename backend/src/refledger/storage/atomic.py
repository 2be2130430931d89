"""Single-statement conditional writes.

Each helper issues one statement (or one statement inside a savepoint) so
that the check and the write cannot be separated by a concurrent request.
"""

from typing import Any

from sqlalchemy import insert, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _dialect_insert(session: Session, model):
    factory = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
    return factory(model) if factory else None


def insert_if_absent(
    session: Session,
    model,
    values: dict[str, Any],
    index_elements: list[str],
) -> bool:
    """Insert a row unless one with the same unique key already exists.

    Returns:
        True if this call created the row, False if it already existed
    """
    stmt = _dialect_insert(session, model)
    if stmt is not None:
        stmt = stmt.values(**values).on_conflict_do_nothing(index_elements=index_elements)
        result = session.connection().execute(stmt)
        return result.rowcount == 1

    try:
        with session.begin_nested():
            session.connection().execute(insert(model).values(**values))
    except IntegrityError:
        return False
    return True


def add_to_column(
    session: Session,
    model,
    key: dict[str, Any],
    column: str,
    amount: int,
) -> None:
    """Add ``amount`` to ``column`` of the row identified by ``key``.

    The row is created with ``column = amount`` when it does not exist.
    ``key`` must match a unique constraint on the table.
    """
    stmt = _dialect_insert(session, model)
    if stmt is not None:
        stmt = stmt.values(**key, **{column: amount})
        stmt = stmt.on_conflict_do_update(
            index_elements=list(key),
            set_={column: getattr(model, column) + getattr(stmt.excluded, column)},
        )
        session.connection().execute(stmt)
        return

    conditions = [getattr(model, name) == value for name, value in key.items()]
    bump = update(model).where(*conditions).values({column: getattr(model, column) + amount})
    if session.connection().execute(bump).rowcount:
        return
    if not insert_if_absent(session, model, {**key, column: amount}, list(key)):
        session.connection().execute(bump)


def increment(session: Session, model, conditions: list, column: str, by: int = 1) -> int:
    """Increment ``column`` in place on every row matching ``conditions``.

    Returns:
        Number of rows updated
    """
    stmt = update(model).where(*conditions).values({column: getattr(model, column) + by})
    return session.connection().execute(stmt).rowcount


def update_where(session: Session, model, conditions: list, values: dict[str, Any]) -> int:
    """Apply ``values`` to rows matching ``conditions``.

    Guards in ``conditions`` are evaluated by the database at write time,
    which is what makes check-and-set safe under concurrent requests.

    Returns:
        Number of rows updated
    """
    stmt = update(model).where(*conditions).values(values)
    return session.connection().execute(stmt).rowcount
