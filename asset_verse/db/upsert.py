from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def insert_if_absent(db: Session, table, values: dict) -> bool:
    """Insert a row unless it collides with a unique constraint or index.

    Returns True when the row was written. Existing rows are never touched.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(table).values(**values).on_conflict_do_nothing()
    elif dialect == "sqlite":
        stmt = sqlite.insert(table).values(**values).on_conflict_do_nothing()
    elif dialect in {"mysql", "mariadb"}:
        stmt = insert(table).prefix_with("IGNORE").values(**values)
    else:
        raise RuntimeError(f"Create-only inserts are not supported on dialect {dialect}")
    result = db.execute(stmt)
    return result.rowcount == 1
