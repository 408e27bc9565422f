from sqlalchemy.orm import Session
from curve_scanner.storage.db_utils import dialect_insert


def insert_if_absent(session: Session, model, row: dict) -> bool:
    """Create-if-absent keyed by `model.NATURAL_KEY`.

    An existing row is left untouched. Returns True when a row was inserted.
    """
    stmt = (
        dialect_insert(session, model.__table__).values(**row)
        .on_conflict_do_nothing(index_elements=list(model.NATURAL_KEY))
    )
    result = session.execute(stmt)
    return result.rowcount == 1
